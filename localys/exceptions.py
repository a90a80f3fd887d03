import logging
from fastapi import Request, HTTPException, status
from fastapi.responses import JSONResponse
from typing import Any, Callable

logger = logging.getLogger(__name__)


class APIException(Exception):
    """ Base class for all exceptions in the Localys API. """
    pass


class PaymentNotConfiguredException(APIException):
    """ Exception is raised when a payment route is hit without Stripe credentials. """
    pass


class InvalidWebhookSignatureException(APIException):
    """ Exception is raised when a webhook payload fails signature verification. """
    pass


class MissingWebhookSignatureException(APIException):
    """ Exception is raised when a webhook arrives without a signature header. """
    pass


class PaymentProviderException(APIException):
    """ Exception is raised when the payment provider rejects or fails a request. """
    pass


class NotFoundException(HTTPException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class BadRequestException(HTTPException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ForbiddenException(HTTPException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ConflictException(HTTPException):
    def __init__(self, detail: str = "Resource already exists"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class PreconditionFailedException(HTTPException):
    """ The resource exists but is not in the state the operation requires. """

    def __init__(self, detail: str = "Precondition failed"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ServiceUnavailableException(HTTPException):
    def __init__(self, detail: str = "Something went wrong. Please try again later."):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


def create_exception_handler(status_code: int, detail: Any) -> Callable[[Request, Exception], JSONResponse]:
    async def exception_handler(request: Request, exception: APIException):
        return JSONResponse(
            content={"detail": detail},
            status_code=status_code
        )

    return exception_handler


async def unhandled_exception_handler(request: Request, exception: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        content={"detail": "Something went wrong. Please try again later."},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
