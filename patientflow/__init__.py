"""Patient-flow orchestration app.

This package contains the visit queue, the room booking engine and the
orchestration layer that coordinates them, together with the API views
and route registrations exposing them to the front-end.
"""
