"""Error types raised by the cloud workbook sync."""

from typing import List, Optional, Tuple


class SyncError(RuntimeError):
    """Base error. Carries the operation and sheet name when known."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 sheet: Optional[str] = None):
        self.message = message
        self.operation = operation
        self.sheet = sheet
        super().__init__(self._render())

    def _render(self) -> str:
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.sheet:
            context.append(f"sheet='{self.sheet}'")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class ConfigurationError(SyncError):
    """Required configuration is missing or malformed."""


class ResolutionError(SyncError):
    """Workbook, worksheet, header row or identifier column not found."""


class NotFoundError(ResolutionError):
    """Nothing matched: workbook unresolvable, or business key absent on pull."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 sheet: Optional[str] = None,
                 attempts: Optional[List[Tuple[str, Exception]]] = None):
        self.attempts = list(attempts or [])
        super().__init__(message, operation=operation, sheet=sheet)


class AuthorizationError(SyncError):
    """401/403, an invalid token, or a failed token acquisition."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 sheet: Optional[str] = None, status: Optional[int] = None,
                 attempts: Optional[List[Tuple[str, Exception]]] = None):
        self.status = status
        self.attempts = list(attempts or [])
        super().__init__(message, operation=operation, sheet=sheet)


class GraphApiError(SyncError):
    """Any other non-2xx response from the document API."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 sheet: Optional[str] = None, status: Optional[int] = None,
                 code: Optional[str] = None):
        self.status = status
        self.code = code
        super().__init__(message, operation=operation, sheet=sheet)
