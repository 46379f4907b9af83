"""
fleetdesk.services

Service layer: principal resolution, the superadmin reconciler and the catalog
change dispatcher.

Responsibilities:
- Own transaction boundaries for reconcile writes.
- Translate store failures into domain errors the API layer can map.
"""

# Package marker.
