# app/api/exception_handlers.py

from typing import TYPE_CHECKING
from fastapi import Request, status
from fastapi.responses import JSONResponse
from exceptions.domain_exceptions import DomainException
from services.user_manager import NicknameAlreadyExists, EmailAlreadyExists

if TYPE_CHECKING:
    from fastapi import FastAPI


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """
    Render any DomainException as JSON.

    Response body: {"error": <class name>, "message", "details", "path"}
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.__class__.__name__,
            "message": exc.message,
            "details": exc.details,
            "path": request.url.path
        }
    )


async def registration_conflict_handler(request: Request, exc: Exception) -> JSONResponse:
    """Nickname/email collisions raised by the user manager during registration"""
    field = "nickname" if isinstance(exc, NicknameAlreadyExists) else "email"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": {"field": field, "message": str(exc)}}
    )


def register_exception_handlers(app: "FastAPI") -> None:
    """
    Register the domain exception handlers with the FastAPI app.

    Subclasses (NotMemberException, InvalidAccessCodeException, ...) resolve to
    the DomainException handler through the exception MRO.
    """
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(NicknameAlreadyExists, registration_conflict_handler)
    app.add_exception_handler(EmailAlreadyExists, registration_conflict_handler)
