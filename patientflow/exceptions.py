"""
Error taxonomy for patient-flow operations and the unified API handler.

Every domain error is recoverable at the caller boundary and carries a
machine-readable ``code`` plus the HTTP status the API layer answers
with, so the front-end can tell "room already booked" apart from
"patient already in queue".  Storage faults are not part of the
taxonomy; they surface as opaque infrastructure errors.
"""
from __future__ import annotations

import logging

from django.db import DatabaseError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class PatientFlowError(Exception):
    status_code = 400
    code = 'error'

    def __init__(self, message: str = '', **extra):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.extra = extra

    def as_error(self) -> dict:
        return {'code': self.code, 'message': self.message, **self.extra}


class ValidationError(PatientFlowError):
    """Malformed input, e.g. a booking whose start is not before its end."""
    status_code = 400
    code = 'validation_error'


class NotFoundError(PatientFlowError):
    status_code = 404
    code = 'not_found'


class DuplicateError(PatientFlowError):
    """The patient already has an active entry in the department queue."""
    status_code = 409
    code = 'duplicate'

    def __init__(self, message: str = '', existing_entry_id=None):
        super().__init__(message, existingEntryId=str(existing_entry_id) if existing_entry_id else None)
        self.existing_entry_id = existing_entry_id


class ConflictError(PatientFlowError):
    """The requested interval overlaps an existing booking of the room."""
    status_code = 409
    code = 'conflict'

    def __init__(self, message: str = '', conflicting_booking_id=None):
        super().__init__(message, conflictingBookingId=str(conflicting_booking_id))
        self.conflicting_booking_id = conflicting_booking_id


class InvalidTransitionError(PatientFlowError):
    status_code = 409
    code = 'invalid_transition'

    def __init__(self, message: str = '', current=None, requested=None):
        super().__init__(message, current=current, requested=requested)
        self.current = current
        self.requested = requested


class NoCandidateError(PatientFlowError):
    """Nobody is waiting.  An expected outcome, answered with an empty result."""
    status_code = 200
    code = 'no_candidate'


def api_exception_handler(exc, context):
    if isinstance(exc, NoCandidateError):
        return Response({'ok': True, 'data': None, 'detail': exc.message}, status=200)
    if isinstance(exc, PatientFlowError):
        logger.info("Rejected %s: %s", exc.code, exc.message)
        return Response({'ok': False, 'error': exc.as_error()}, status=exc.status_code)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        if isinstance(exc, DatabaseError):
            logger.error("Storage failure: %s", exc, exc_info=True)
            return Response(
                {'ok': False, 'error': {'code': 'storage_unavailable', 'message': 'storage unavailable'}},
                status=503,
            )
        logger.error("Unhandled exception: %s", exc, exc_info=True)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': 'internal server error'}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    code = 'validation_error' if resp.status_code == 400 else 'api_error'
    return Response({'ok': False, 'error': {'code': code, 'message': detail}}, status=resp.status_code)
