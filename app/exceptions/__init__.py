# app/exceptions/__init__.py

from exceptions.domain_exceptions import (
    DomainException,
    NotFoundException,
    BadRequestException,
    ConflictException,
    UnauthorizedException,
    ForbiddenException,
    ValidationException,
    InternalServerException,
    NotMemberException,
    InvalidAccessCodeException,
    DuplicateChannelNameException,
    TranslationUnavailableException,
)

__all__ = [
    'DomainException',
    'NotFoundException',
    'BadRequestException',
    'ConflictException',
    'UnauthorizedException',
    'ForbiddenException',
    'ValidationException',
    'InternalServerException',
    'NotMemberException',
    'InvalidAccessCodeException',
    'DuplicateChannelNameException',
    'TranslationUnavailableException',
]
