import logging

from django.db import DatabaseError, IntegrityError, OperationalError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class InvalidInput(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input."
    default_code = "invalid_input"


class SelfFollow(InvalidInput):
    default_detail = "Cannot follow yourself."
    default_code = "self_follow"


class Conflict(APIException):
    """
    Duplicate edge/request/like. Views convert it into a successful
    response wherever the action is naturally idempotent.
    """

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists."
    default_code = "conflict"


class AlreadyFollowing(Conflict):
    default_detail = "Already following."
    default_code = "already_following"


class StorageUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Storage temporarily unavailable, try again later."
    default_code = "storage_unavailable"


RETRY_AFTER_SECONDS = 5


def api_exception_handler(exc, context):
    """
    DRF exception handler:
    - OperationalError (timeout, lost connection) -> 503 with Retry-After
    - IntegrityError that escaped a service -> 409
    - other DatabaseError / unexpected errors -> logged, generic 500
    """
    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else "unknown view"

    if isinstance(exc, OperationalError):
        logger.warning(f"Storage unavailable in {view_name}: {exc}")
        exc = StorageUnavailable()
    elif isinstance(exc, IntegrityError):
        logger.info(f"Integrity conflict in {view_name}: {exc}")
        exc = Conflict()
    elif isinstance(exc, DatabaseError):
        logger.exception(f"Database error in {view_name}")
        return Response(
            {"detail": "Server error."},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    response = exception_handler(exc, context)
    if response is None:
        logger.exception(f"Unhandled error in {view_name}", exc_info=exc)
        return Response(
            {"detail": "Server error."},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, StorageUnavailable):
        response["Retry-After"] = str(RETRY_AFTER_SECONDS)
    return response
