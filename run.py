#!/usr/bin/env python3
"""Convenience runner for the Tube check-in tools.

Usage:
    python run.py geofence --target 51.5033 -0.1195 --device 51.5036 -0.1190
"""
import logging
from tube_checkin.main import main

if __name__ == "__main__":
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    raise SystemExit(main())
