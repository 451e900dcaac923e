"""Module entry point: python -m tube_checkin ..."""

from __future__ import annotations

from tube_checkin.main import main


if __name__ == "__main__":
    raise SystemExit(main())
