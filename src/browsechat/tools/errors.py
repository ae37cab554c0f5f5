from __future__ import annotations


class ToolError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ToolValidationError(ToolError):
    pass


class UnknownToolError(ToolError):
    pass


class SessionError(ToolError):
    pass


class BrowserError(ToolError):
    pass


class RepoError(ToolError):
    pass


class FetchError(ToolError):
    pass
