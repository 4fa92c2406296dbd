"""
JSON envelope shared by every REST endpoint.

Success: {"success": true, "message": ..., "data": {...}}
Failure: {"success": false, "error": <code>, "message": ..., "data"?: {...}}
"""

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler


def success_response(data=None, message: str = "", status_code: int = status.HTTP_200_OK) -> Response:
    body = {"success": True, "message": message, "data": data if data is not None else {}}
    return Response(body, status=status_code)


def error_response(error: str, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, data=None) -> Response:
    body = {"success": False, "error": error, "message": message}
    if data is not None:
        body["data"] = data
    return Response(body, status=status_code)


def domain_error_response(exc) -> Response:
    """Translate a service exception carrying error_code/status_code."""
    return error_response(
        exc.error_code,
        exc.message or str(exc),
        status_code=exc.status_code,
        data=exc.data,
    )


def envelope_exception_handler(exc, context):
    """
    REST_FRAMEWORK EXCEPTION_HANDLER: DRF's own handling (auth failures,
    permission denials, parse errors), wrapped in the failure envelope.
    """
    response = exception_handler(exc, context)
    if response is None:
        return None

    detail = response.data
    code = getattr(exc, "default_code", "error")
    if isinstance(detail, dict) and set(detail) == {"detail"}:
        response.data = {"success": False, "error": code, "message": str(detail["detail"])}
    else:
        response.data = {"success": False, "error": code, "message": "Invalid request data", "data": detail}
    return response
