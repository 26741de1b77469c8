"""
  Domain exceptions

  Raised by services and translated to HTTP responses by the API layer
  (see nicecommerce.api.errors):
    - BusinessException → 400
    - UnauthorizedException → 401
    - AccessDeniedException → 403
    - ResourceNotFoundException → 404
"""


class NiceCommerceError(Exception):
    """Base class for errors that carry a client-facing message."""
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BusinessException(NiceCommerceError):
    """A business rule rejected the request."""
    status_code = 400


class UnauthorizedException(NiceCommerceError):
    """Missing, malformed or rejected credentials."""
    status_code = 401


class AccessDeniedException(NiceCommerceError):
    """Authenticated, but not allowed to touch this resource."""
    status_code = 403


class ResourceNotFoundException(NiceCommerceError):
    status_code = 404
