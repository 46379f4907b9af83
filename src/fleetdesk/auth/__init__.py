"""
fleetdesk.auth

Authentication/authorization package.

Responsibilities:
- JWT issuing and validation (credential verifier).
- Principal model, guard checks and FastAPI auth dependencies.
- Password hashing.
"""

# Package marker.
