"""
fleetdesk

Top-level package for the fleet/booking management backend.

Responsibilities:
- Expose package version metadata.
"""

__all__ = ["__version__"]

__version__ = "0.3.0"


# --- Module Notes -----------------------------------------------------------
# Keep this file minimal; importing `fleetdesk` must not touch settings or the DB.
