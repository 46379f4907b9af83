"""
fleetdesk.api

HTTP layer: app factory, dependency wiring, exception handlers and routers.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Routers stay thin: request validation, guard dependencies, delegation to repos/services.
