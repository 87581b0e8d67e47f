# ==============================================================================
# errors.py  –  Application error hierarchy
#
# Every error carries a machine-readable `code` and an HTTP-style
# `status_code` so callers (CLI, API layers) can report it uniformly.
# ==============================================================================

from __future__ import annotations

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for all knightstats errors."""

    def __init__(self, message: str, code: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


# ------------------------------------------------------------------------------
# Lookup / input errors
# ------------------------------------------------------------------------------


class UserNotFoundError(AppError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} not found", "USER_NOT_FOUND", 404)
        self.user_id = user_id


class GameNotFoundError(AppError):
    def __init__(self, game_id: str) -> None:
        super().__init__(f"Game {game_id} not found", "GAME_NOT_FOUND", 404)
        self.game_id = game_id


class ValidationError(AppError):
    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message, "VALIDATION_ERROR", 400)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        return payload


# ------------------------------------------------------------------------------
# Platform errors
# ------------------------------------------------------------------------------


class ExternalApiError(AppError):
    """A platform call failed for a reason other than rate limiting / 404."""

    def __init__(self, source: str, original_error: Optional[BaseException] = None):
        detail = str(original_error) if original_error else "Unknown error"
        super().__init__(
            f"Error fetching from {source}: {detail}", "EXTERNAL_API_ERROR", 502
        )
        self.source = source
        self.original_error = original_error


class RateLimitError(AppError):
    def __init__(self, source: str, retry_after: Optional[int] = None) -> None:
        super().__init__(f"Rate limited by {source}", "RATE_LIMITED", 429)
        self.source = source
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.retry_after is not None:
            payload["retryAfter"] = self.retry_after
        return payload


class InvalidUsernameError(AppError):
    def __init__(self, source: str, username: str) -> None:
        super().__init__(
            f"Invalid {source} username: {username}", "INVALID_USERNAME", 400
        )
        self.source = source
        self.username = username


# ------------------------------------------------------------------------------
# Infrastructure errors
# ------------------------------------------------------------------------------


class DatabaseError(AppError):
    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message, "DATABASE_ERROR", 500)
        self.original_error = original_error


class SyncError(AppError):
    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message, "SYNC_ERROR", 500)
        self.source = source
