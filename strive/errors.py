"""Exception taxonomy for request-level failures.

Upstream degradation (a slow or failing TMDB/IMDb call) is not represented
here: fetchers return a ``FetchResult`` instead of raising.
"""


class StriveError(Exception):
    """Base class for errors that map to an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientError(StriveError):
    """Bad path shape, content type or body."""

    status_code = 400


class MethodNotAllowedError(ClientError):
    status_code = 405

    def __init__(self, message: str = "Method not allowed"):
        super().__init__(message)


class InvalidHeadersError(ClientError):
    """Uploaded CSV header does not match the import contract."""


class LegacyHeadersError(InvalidHeadersError):
    """Uploaded CSV uses the legacy Letterboxd-style header."""


class AuthError(StriveError):
    """Missing, invalid or revoked bearer token."""

    status_code = 401


class AuthorizationError(StriveError):
    """Valid caller, wrong owner."""

    status_code = 403

    def __init__(self, message: str = "Forbidden: You do not have permission to access this list"):
        super().__init__(message)


class NotFoundError(StriveError):
    status_code = 404
