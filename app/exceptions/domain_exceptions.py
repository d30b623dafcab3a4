# app/exceptions/domain_exceptions.py

from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base class for all alliance/messaging domain errors.

    Carries an HTTP-style status code so the same exception can be rendered by
    the FastAPI handler or turned into a Socket.IO `error` event.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(DomainException):
    """Alliance, channel, message or user does not exist"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=404, details=details)


class BadRequestException(DomainException):
    """Request is well-formed but not allowed in the current state"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=400, details=details)


class ConflictException(DomainException):
    """Unique value (tag, server name, channel name) already taken"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=409, details=details)


class UnauthorizedException(DomainException):

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=401, details=details)


class ForbiddenException(DomainException):
    """Role or channel authorization denies the operation"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=403, details=details)


class ValidationException(DomainException):
    """Input failed a domain rule (length, language, role value)"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=422, details=details)


class InternalServerException(DomainException):

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=500, details=details)


class NotMemberException(ForbiddenException):
    """User acts on an alliance they do not belong to"""

    def __init__(self, alliance_id: int, user_id: int):
        super().__init__(
            message="You are not a member of this alliance",
            details={"alliance_id": alliance_id, "user_id": user_id}
        )


class InvalidAccessCodeException(NotFoundException):
    """No private channel matches the access code"""

    def __init__(self, message: str = "Invalid access code", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details)


class DuplicateChannelNameException(ConflictException):

    def __init__(self, name: str):
        super().__init__(
            message=f"A channel named '{name}' already exists",
            details={"name": name}
        )


class TranslationUnavailableException(DomainException):
    """Raised by the translation provider; never leaves the translation gateway"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=503, details=details)
