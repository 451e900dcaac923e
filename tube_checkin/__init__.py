"""Geofence verification and activity state for Tube station check-ins."""

from .activity_state import ActivityStateService, project_activity_state
from .errors import ActivityStateError, DataStoreError, StationResolutionError
from .geofence import (
    GeofenceValidator,
    determine_gps_source,
    is_within_geofence,
    validate_geofence,
)
from .models import (
    ActivityMode,
    ActivityPlanItem,
    GeodeticPoint,
    GeofenceResult,
    GPSSource,
    StationVisitRecord,
    UnifiedActivityState,
    VisitStatus,
)

__all__ = [
    "ActivityMode",
    "ActivityPlanItem",
    "ActivityStateError",
    "ActivityStateService",
    "DataStoreError",
    "GeodeticPoint",
    "GeofenceResult",
    "GeofenceValidator",
    "GPSSource",
    "StationResolutionError",
    "StationVisitRecord",
    "UnifiedActivityState",
    "VisitStatus",
    "determine_gps_source",
    "is_within_geofence",
    "project_activity_state",
    "validate_geofence",
]
