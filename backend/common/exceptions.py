from loguru import logger
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Request conflicts with the current state of the resource."
    default_code = "conflict"


def api_exception_handler(exc, context):
    """Let DRF map known errors; log anything else and answer with a generic 500."""
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.opt(exception=exc).error(
        "Unhandled error in {}", type(view).__name__ if view else "unknown view"
    )
    return Response(
        {"detail": "Internal server error"},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
