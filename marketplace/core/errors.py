"""Service-layer exceptions.

Services raise these; routers translate them into ``HTTPException`` with the
matching status code. Anything else reaching a router is an internal error.
"""
from fastapi import HTTPException, status


class ServiceError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT


class GatewayError(ServiceError):
    """Payment gateway rejected the request or could not be reached."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, raw=None):
        super().__init__(message)
        self.raw = raw


def to_http(exc: ServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)
