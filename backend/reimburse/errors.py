from __future__ import annotations
"""Domain error types.

Every error raised by the engines and gateways is an ``HTTPException`` so the
unified handler in ``create_app`` renders it with the standard JSON shape.
``kind`` classifies the failure independently of the status code (a STATE
violation on a document edit is a 403, elsewhere a 400).
"""
from werkzeug.exceptions import HTTPException


class DomainError(HTTPException):
    code = 500
    kind = 'INTERNAL'

    def __init__(self, description: str | None = None):
        super().__init__(description=description)


class ValidationFailed(DomainError):
    code = 400
    kind = 'VALIDATION'
    name = 'Bad Request'


class NotFound(DomainError):
    code = 404
    kind = 'NOT_FOUND'
    name = 'Not Found'


class StateError(DomainError):
    code = 400
    kind = 'STATE'
    name = 'Bad Request'


class DocumentStateError(StateError):
    code = 403
    name = 'Forbidden'


class Forbidden(DomainError):
    code = 403
    kind = 'AUTHZ'
    name = 'Forbidden'


class Unauthenticated(DomainError):
    code = 401
    kind = 'UNAUTH'
    name = 'Unauthorized'


class UpstreamError(DomainError):
    code = 500
    kind = 'UPSTREAM'
    name = 'Upstream Error'


class DmsTransportError(UpstreamError):
    pass


class DmsRejectedError(UpstreamError):
    pass


class DmsNotFoundError(UpstreamError):
    pass


class IdpError(UpstreamError):
    pass


class IdpConflictError(ValidationFailed):
    pass


class InvalidCredentials(Unauthenticated):
    pass


__all__ = [
    'DomainError', 'ValidationFailed', 'NotFound', 'StateError', 'DocumentStateError',
    'Forbidden', 'Unauthenticated', 'UpstreamError', 'DmsTransportError', 'DmsRejectedError',
    'DmsNotFoundError', 'IdpError', 'IdpConflictError', 'InvalidCredentials',
]
