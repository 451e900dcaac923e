"""Remote data store access (session, response handling, table readers)."""

from ..models import AppSettings  # noqa: F401
from .client import DataStoreClient  # noqa: F401
from .session import create_default_session  # noqa: F401
