# ==============================================================================
# validation.py  –  Input checks run before any side effect
#
# All validators return the cleaned value or raise `ValidationError`.
# ==============================================================================

from __future__ import annotations

import re
from typing import Any, Optional, Sequence

from knightstats.errors import ValidationError
from knightstats.models.game import (
    GAME_SOURCES,
    PLAYER_COLORS,
    RESULTS,
    TERMINATIONS,
    TIME_CLASSES,
)

_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_ECO_RE = re.compile(r"^[A-E][0-9]{2}$")

USERNAME_MAX = 50
GAME_ID_MAX = 100


def validate_username(value: Any, field: str = "username") -> str:
    """Trimmed 1–50 chars of letters, digits, underscore or hyphen."""
    if value is None or not isinstance(value, str):
        raise ValidationError(f"{field} is required", field)

    cleaned = value.strip()
    if not cleaned:
        raise ValidationError(f"{field} cannot be empty", field)
    if len(cleaned) > USERNAME_MAX:
        raise ValidationError(
            f"{field} must be {USERNAME_MAX} characters or less", field
        )
    if not _NAME_RE.match(cleaned):
        raise ValidationError(
            f"{field} can only contain letters, numbers, underscores, and hyphens",
            field,
        )
    return cleaned


def validate_optional_username(value: Any, field: str = "username") -> Optional[str]:
    """Like `validate_username` but blank / None → None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return validate_username(value, field)


def validate_game_id(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError("Game ID is required", "gameId")
    if len(value) > GAME_ID_MAX:
        raise ValidationError("Invalid game ID", "gameId")
    if not _NAME_RE.match(value):
        raise ValidationError("Invalid game ID format", "gameId")
    return value


def validate_eco_code(value: Any) -> str:
    """Normalise to upper case and check the A00–E99 range."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("ECO code is required", "eco")
    cleaned = value.strip().upper()
    if not _ECO_RE.match(cleaned):
        raise ValidationError(
            "Invalid ECO code format (expected A00-E99)", "eco"
        )
    return cleaned


def _validate_choice(value: Any, choices: Sequence[str], field: str) -> str:
    if value not in choices:
        raise ValidationError(
            f"{field} must be one of: {', '.join(choices)}", field
        )
    return value


def validate_player_color(value: Any) -> str:
    return _validate_choice(value, PLAYER_COLORS, "color")


def validate_source(value: Any) -> str:
    return _validate_choice(value, GAME_SOURCES, "source")


def validate_result(value: Any) -> str:
    return _validate_choice(value, RESULTS, "result")


def validate_time_class(value: Any) -> str:
    return _validate_choice(value, TIME_CLASSES, "timeClass")


def validate_termination(value: Any) -> str:
    return _validate_choice(value, TERMINATIONS, "termination")


def validate_count(value: Any, field: str, maximum: Optional[int] = None) -> int:
    """Non-negative integer analysis counters (blunders, mistakes, …)."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer", field)
    if maximum is not None and value > maximum:
        raise ValidationError(f"{field} must be at most {maximum}", field)
    return value
