# ==============================================================================
# user.py  –  Account record holding per-platform usernames
# ==============================================================================

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from knightstats.models.game import CHESSCOM, LICHESS


@dataclass(frozen=True)
class User:
    id: int
    chesscom_username: Optional[str] = None
    lichess_username: Optional[str] = None
    created_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None

    @property
    def has_any_platform(self) -> bool:
        return bool(self.chesscom_username or self.lichess_username)

    def platform_usernames(self) -> List[Tuple[str, str]]:
        """Configured ``(source, username)`` pairs, Chess.com first."""
        pairs: List[Tuple[str, str]] = []
        if self.chesscom_username:
            pairs.append((CHESSCOM, self.chesscom_username))
        if self.lichess_username:
            pairs.append((LICHESS, self.lichess_username))
        return pairs

    def platform_display_text(self) -> str:
        labels = [
            f"{'Chess.com' if source == CHESSCOM else 'Lichess'}: {name}"
            for source, name in self.platform_usernames()
        ]
        return ", ".join(labels) or "No platforms configured"

    def format_last_synced(self, now: Optional[datetime] = None) -> str:
        """Human readable age of the last sync ("5 minutes ago")."""
        if self.last_synced_at is None:
            return "Never synced"

        now = now or datetime.now(timezone.utc)
        minutes = int((now - self.last_synced_at).total_seconds() // 60)
        hours = minutes // 60
        days = hours // 24

        if minutes < 1:
            return "Just now"
        if minutes < 60:
            return f"{minutes} minute{'' if minutes == 1 else 's'} ago"
        if hours < 24:
            return f"{hours} hour{'' if hours == 1 else 's'} ago"
        return f"{days} day{'' if days == 1 else 's'} ago"
