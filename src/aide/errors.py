from __future__ import annotations


class AideError(RuntimeError):
    pass


class NotConnectedError(AideError):
    """The Google account is not linked, or its refresh token was revoked."""


class GoogleAPIError(AideError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LLMError(AideError):
    def __init__(
        self,
        message: str,
        *,
        error_type: str = "http_error",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.status_code = status_code


class ToolArgumentError(ValueError):
    pass
