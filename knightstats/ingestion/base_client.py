# ==============================================================================
# base_client.py  –  Adapter contract shared by every chess platform
#
# The sync orchestrator only talks to `ChessClient`; adding a platform means
# adding one subclass and registering it under its `source` key.
# ==============================================================================

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import requests

from knightstats.models.game import Game
from knightstats.utils.http_utils import build_session

DEFAULT_MAX_GAMES = 100


@dataclass(frozen=True)
class FetchOptions:
    """
    Window + size limits for one fetch.

    ``since`` / ``until`` are inclusive instants. ``fetch_all`` ignores
    ``max_games`` and walks the whole history.
    """

    since: Optional[datetime] = None
    until: Optional[datetime] = None
    max_games: int = DEFAULT_MAX_GAMES
    fetch_all: bool = False

    def in_window(self, played_at: datetime) -> bool:
        if self.since and played_at < self.since:
            return False
        if self.until and played_at > self.until:
            return False
        return True


class ChessClient(ABC):
    """One platform adapter: existence check + windowed game fetch."""

    source: str = ""

    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self.session = session or build_session()

    @abstractmethod
    def validate_user(self, username: str) -> bool:
        """True if ``username`` exists on the platform. Never raises."""

    @abstractmethod
    def fetch_games(
        self, username: str, options: Optional[FetchOptions] = None
    ) -> List[Game]:
        """Canonical games for ``username``, newest first."""

    # -- shared helpers --------------------------------------------------------

    @staticmethod
    def _finalize(games: List[Game], options: FetchOptions) -> List[Game]:
        """Apply the exact window, sort newest-first, cap unless fetch_all."""
        kept = [g for g in games if options.in_window(g.played_at)]
        kept.sort(key=lambda g: g.played_at, reverse=True)
        if not options.fetch_all:
            kept = kept[: options.max_games]
        return kept
