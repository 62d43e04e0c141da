from fastapi import status


class AppError(Exception):
    """Base error for request-local failures rendered as JSON."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


class BadRequest(AppError):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail)


class NotFound(AppError):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail)


class Unauthorized(AppError):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail)


class LoginRequired(AppError):
    """Raised for login-only actions on anonymous requests; rendered as a redirect."""

    def __init__(self, detail: str = "Login required"):
        super().__init__(status.HTTP_302_FOUND, detail)


class UpstreamFetchError(AppError):
    """The media provider answered with a bad status or could not be reached.

    ``status_code`` is the provider's own status when one was received,
    otherwise 502.
    """

    def __init__(self, status_code: int | None, detail: str = "Error fetching media from provider"):
        super().__init__(status_code or status.HTTP_502_BAD_GATEWAY, detail)
        self.upstream_status = status_code
