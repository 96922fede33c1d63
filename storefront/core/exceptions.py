"""
Error types raised by the catalog import and inventory engine.

They are DRF APIExceptions so views can let them propagate and the project
exception handler renders them as a single error object.
"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class EngineError(APIException):
    """Base class; subclasses add the extra keys they expose to callers.

    ``partial_batch`` and ``report`` are set when the error aborts a
    non-strict batch: they tell the caller what was committed before it.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Catalog engine error.'
    default_code = 'engine_error'

    def __init__(self, message=None, code=None):
        super().__init__(detail=message or self.default_detail, code=code or self.default_code)
        self.message = str(self.detail)
        self.partial_batch = False
        self.report = None

    def extra(self):
        return {}

    def as_dict(self):
        body = {'error': self.default_code, 'message': self.message}
        body.update(self.extra())
        body['partial_batch'] = self.partial_batch
        if self.report is not None:
            body['report'] = self.report
        return body


class RecordValidationError(EngineError):
    """A required field is missing or invalid; user-correctable.

    ``field`` is the path of the offending value (``products[2].nome``).
    """
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'Invalid import record.'
    default_code = 'validation_error'

    def __init__(self, message=None, field=None, record_index=None):
        super().__init__(message)
        self.field = field
        self.record_index = record_index

    def extra(self):
        return {'field': self.field, 'record_index': self.record_index}


class DuplicateKey(EngineError):
    """Business-key or unique-pair collision. Never retried."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Duplicate key.'
    default_code = 'duplicate_key'

    def __init__(self, message=None, field=None):
        super().__init__(message)
        self.field = field

    def extra(self):
        return {'field': self.field}


class ConstraintRace(EngineError):
    """A concurrent writer won a uniqueness race and the retry lookup still missed."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Concurrent update conflict, try again.'
    default_code = 'constraint_race'

    def __init__(self, kind, name):
        super().__init__(f"Could not resolve {kind} '{name}' after a concurrent insert")
        self.kind = kind
        self.name = name

    def extra(self):
        return {'kind': self.kind, 'name': self.name}


class StorageUnavailable(EngineError):
    """The database cannot be reached or failed mid-write.

    Raised before the first record nothing was processed; raised later in a
    non-strict batch ``partial_batch`` says whether earlier records committed.
    """
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Storage unavailable.'
    default_code = 'storage_unavailable'


def api_exception_handler(exc, context):
    """Render engine errors as a single error object, defer to DRF otherwise."""
    if isinstance(exc, EngineError):
        if exc.status_code >= 500:
            logger.error(f"{exc.default_code}: {exc.message}")
        return Response(exc.as_dict(), status=exc.status_code)
    return exception_handler(exc, context)
