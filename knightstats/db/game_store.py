# ==============================================================================
# game_store.py  –  Persistence for users and canonical games
# ------------------------------------------------------------------------------
# Responsibilities:
#   • Idempotent upsert keyed by (user_id, source, id)
#       – clock columns keep the stored value once known
#       – analysis columns prefer the incoming value
#   • Query helpers mirroring `GameFilter` semantics in SQL
#   • User records + last-synced bookkeeping
# All SQLAlchemy failures surface as `DatabaseError`.
# ==============================================================================

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from knightstats.db.schema import GAMES, USERS, create_schema
from knightstats.errors import (
    DatabaseError,
    GameNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from knightstats.filtering.game_filter import GameFilter
from knightstats.models.game import (
    UNKNOWN_ECO,
    UNKNOWN_OPENING,
    AnalysisData,
    ClockData,
    Game,
    Opening,
    Opponent,
)
from knightstats.models.user import User
from knightstats.utils.logging_utils import setup_logger
from knightstats.utils.validation import (
    validate_count,
    validate_eco_code,
    validate_game_id,
    validate_optional_username,
    validate_player_color,
    validate_source,
)

LOGGER = setup_logger("game_store")

CLOCK_COLUMNS = (
    "initial_time",
    "increment",
    "time_remaining",
    "avg_move_time",
    "move_times",
)
ANALYSIS_COLUMNS = (
    "accuracy",
    "blunders",
    "mistakes",
    "inaccuracies",
    "acpl",
    "analyzed_at",
)
MAX_PAGE = 1000


# ------------------------------------------------------------------------------
# Row <-> model helpers
# ------------------------------------------------------------------------------


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def build_game_row(game: Game, user_id: int) -> Dict[str, Any]:
    """Canonical game → DB-ready column mapping."""
    row: Dict[str, Any] = {
        "user_id": user_id,
        "source": game.source,
        "id": game.id,
        "played_at": _as_utc(game.played_at),
        "time_class": game.time_class,
        "player_color": game.player_color,
        "result": game.result,
        "opening_eco": game.opening.eco,
        "opening_name": game.opening.name,
        "opponent_username": game.opponent.username,
        "opponent_rating": game.opponent.rating,
        "player_rating": game.player_rating,
        "termination": game.termination,
        "rating_change": game.rating_change,
        "move_count": game.move_count,
        "rated": game.rated,
        "game_url": game.game_url,
    }
    clock = game.clock
    row.update(
        initial_time=clock.initial_time if clock else None,
        increment=clock.increment if clock else None,
        time_remaining=clock.time_remaining if clock else None,
        avg_move_time=clock.avg_move_time if clock else None,
        move_times=json.dumps(list(clock.move_times)) if clock and clock.move_times else None,
    )
    analysis = game.analysis
    row.update(
        accuracy=analysis.accuracy if analysis else None,
        blunders=analysis.blunders if analysis else None,
        mistakes=analysis.mistakes if analysis else None,
        inaccuracies=analysis.inaccuracies if analysis else None,
        acpl=analysis.acpl if analysis else None,
        analyzed_at=analysis.analyzed_at if analysis else None,
    )
    return row


def row_to_game(row: Row) -> Game:
    data = row._mapping
    clock = None
    if data["initial_time"] is not None:
        clock = ClockData(
            initial_time=data["initial_time"],
            increment=data["increment"] or 0,
            time_remaining=data["time_remaining"],
            avg_move_time=data["avg_move_time"],
            move_times=tuple(json.loads(data["move_times"])) if data["move_times"] else (),
        )

    analysis = None
    if data["analyzed_at"] is not None:
        analysis = AnalysisData(
            blunders=data["blunders"] or 0,
            mistakes=data["mistakes"] or 0,
            inaccuracies=data["inaccuracies"] or 0,
            accuracy=data["accuracy"],
            acpl=data["acpl"],
            analyzed_at=_as_utc(data["analyzed_at"]),
        )

    return Game(
        id=data["id"],
        source=data["source"],
        user_id=data["user_id"],
        played_at=_as_utc(data["played_at"]),
        time_class=data["time_class"],
        player_color=data["player_color"],
        result=data["result"],
        opening=Opening(
            eco=data["opening_eco"] or UNKNOWN_ECO,
            name=data["opening_name"] or UNKNOWN_OPENING,
        ),
        opponent=Opponent(
            username=data["opponent_username"] or "Unknown",
            rating=data["opponent_rating"] or 0,
        ),
        player_rating=data["player_rating"] or 0,
        termination=data["termination"] or "other",
        rating_change=data["rating_change"],
        move_count=data["move_count"] or 0,
        rated=bool(data["rated"]),
        game_url=data["game_url"] or "",
        clock=clock,
        analysis=analysis,
    )


def _row_to_user(row: Row) -> User:
    data = row._mapping
    return User(
        id=data["id"],
        chesscom_username=data["chesscom_username"],
        lichess_username=data["lichess_username"],
        created_at=_as_utc(data["created_at"]),
        last_synced_at=_as_utc(data["last_synced_at"]),
    )


def filter_clauses(game_filter: Optional[GameFilter]) -> List[Any]:
    """Translate a `GameFilter` into WHERE clauses over `GAMES`."""
    if game_filter is None:
        return []

    c = GAMES.c
    clauses: List[Any] = []
    if game_filter.date_range:
        start, end = game_filter.date_range
        if start:
            clauses.append(c.played_at >= _as_utc(start))
        if end:
            clauses.append(c.played_at <= _as_utc(end))
    if game_filter.time_classes:
        clauses.append(c.time_class.in_(game_filter.time_classes))
    if game_filter.colors:
        clauses.append(c.player_color.in_(game_filter.colors))
    if game_filter.results:
        clauses.append(c.result.in_(game_filter.results))
    if game_filter.openings:
        clauses.append(c.opening_eco.in_(game_filter.openings))
    if game_filter.opponent_rating_range:
        low, high = game_filter.opponent_rating_range
        if low is not None:
            clauses.append(c.opponent_rating >= low)
        if high is not None:
            clauses.append(c.opponent_rating <= high)
    if game_filter.opponents:
        folded = sorted({o.lower() for o in game_filter.opponents})
        clauses.append(func.lower(c.opponent_username).in_(folded))
    if game_filter.terminations:
        clauses.append(c.termination.in_(game_filter.terminations))
    if game_filter.sources:
        clauses.append(c.source.in_(game_filter.sources))
    if game_filter.rated is not None:
        clauses.append(c.rated == game_filter.rated)
    return clauses


# ==============================================================================
# Stores
# ==============================================================================


class _BaseStore:
    def __init__(self, engine: Engine, create_tables: bool = False) -> None:
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, future=True)
        if create_tables:
            create_schema(engine)

    def _read(self, stmt: Any) -> List[Row]:
        try:
            with self._sessions() as session:
                return list(session.execute(stmt).all())
        except SQLAlchemyError as exc:
            LOGGER.error("Query failed – %s", exc)
            raise DatabaseError("Database query failed", exc) from exc

    def _scalar(self, stmt: Any) -> Any:
        try:
            with self._sessions() as session:
                return session.execute(stmt).scalar()
        except SQLAlchemyError as exc:
            LOGGER.error("Query failed – %s", exc)
            raise DatabaseError("Database query failed", exc) from exc


class GameStore(_BaseStore):
    """Games owned by users; every query is scoped to one user id."""

    # -- reads -----------------------------------------------------------------

    def find_all(
        self,
        user_id: int,
        game_filter: Optional[GameFilter] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Game]:
        """Games newest first; ``limit`` pages through the filtered set."""
        stmt = (
            select(GAMES)
            .where(GAMES.c.user_id == user_id, *filter_clauses(game_filter))
            .order_by(GAMES.c.played_at.desc(), GAMES.c.id)
        )
        cap = game_filter.max_games if game_filter else 0
        if limit is not None:
            limit = min(limit, MAX_PAGE)
            if cap:
                limit = max(0, min(limit, cap - offset))
            stmt = stmt.limit(limit).offset(offset)
        elif cap:
            stmt = stmt.limit(cap)
        return [row_to_game(r) for r in self._read(stmt)]

    def find_by_id(self, game_id: str, user_id: Optional[int] = None) -> Optional[Game]:
        stmt = select(GAMES).where(GAMES.c.id == game_id)
        if user_id is not None:
            stmt = stmt.where(GAMES.c.user_id == user_id)
        rows = self._read(stmt.limit(1))
        return row_to_game(rows[0]) if rows else None

    def find_by_ids(self, game_ids: Sequence[str], user_id: Optional[int] = None) -> List[Game]:
        if not game_ids:
            return []
        stmt = select(GAMES).where(GAMES.c.id.in_(list(game_ids)))
        if user_id is not None:
            stmt = stmt.where(GAMES.c.user_id == user_id)
        stmt = stmt.order_by(GAMES.c.played_at.desc())
        return [row_to_game(r) for r in self._read(stmt)]

    def find_by_eco(
        self, user_id: int, eco: str, color: Optional[str] = None
    ) -> List[Game]:
        eco = validate_eco_code(eco)
        stmt = select(GAMES).where(GAMES.c.user_id == user_id, GAMES.c.opening_eco == eco)
        if color is not None:
            stmt = stmt.where(GAMES.c.player_color == validate_player_color(color))
        stmt = stmt.order_by(GAMES.c.played_at.desc())
        return [row_to_game(r) for r in self._read(stmt)]

    def find_by_opponent(self, user_id: int, opponent: str) -> List[Game]:
        stmt = (
            select(GAMES)
            .where(
                GAMES.c.user_id == user_id,
                func.lower(GAMES.c.opponent_username) == opponent.lower(),
            )
            .order_by(GAMES.c.played_at.desc())
        )
        return [row_to_game(r) for r in self._read(stmt)]

    def count(self, user_id: int, game_filter: Optional[GameFilter] = None) -> int:
        stmt = select(func.count()).select_from(GAMES).where(
            GAMES.c.user_id == user_id, *filter_clauses(game_filter)
        )
        total = int(self._scalar(stmt) or 0)
        if game_filter and game_filter.max_games:
            total = min(total, game_filter.max_games)
        return total

    def exists_by_id(self, game_id: str, user_id: Optional[int] = None) -> bool:
        stmt = select(func.count()).select_from(GAMES).where(GAMES.c.id == game_id)
        if user_id is not None:
            stmt = stmt.where(GAMES.c.user_id == user_id)
        return int(self._scalar(stmt) or 0) > 0

    def get_latest_game_date(self, user_id: int, source: str) -> Optional[datetime]:
        stmt = select(func.max(GAMES.c.played_at)).where(
            GAMES.c.user_id == user_id, GAMES.c.source == validate_source(source)
        )
        return _as_utc(self._scalar(stmt))

    def find_games_needing_analysis(self, user_id: int, limit: int = 50) -> List[Game]:
        stmt = (
            select(GAMES)
            .where(GAMES.c.user_id == user_id, GAMES.c.analyzed_at.is_(None))
            .order_by(GAMES.c.played_at.desc())
            .limit(limit)
        )
        return [row_to_game(r) for r in self._read(stmt)]

    # -- writes ----------------------------------------------------------------

    def save(self, game: Game, user_id: Optional[int] = None) -> bool:
        """Upsert one game. Returns True if it was newly inserted."""
        return self.save_many([game], user_id) == 1

    def save_many(self, games: Iterable[Game], user_id: Optional[int] = None) -> int:
        """
        Upsert games in one transaction.

        Parameters
        ----------
        games : Iterable[Game]
            Games to store; each needs ``user_id`` unless one is passed.
        user_id : int | None
            Owner applied to every game.

        Returns
        -------
        int
            Number of rows inserted (updates are not counted).
        """
        inserted = 0
        try:
            with self._sessions.begin() as session:
                for game in games:
                    owner = user_id if user_id is not None else game.user_id
                    if owner is None:
                        raise ValidationError(f"Game {game.id} has no owner", "userId")
                    inserted += self._upsert(session, build_game_row(game, owner))
        except SQLAlchemyError as exc:
            LOGGER.error("Bulk save failed – %s", exc)
            raise DatabaseError("Failed to save games", exc) from exc
        return inserted

    @staticmethod
    def _upsert(session: Session, row: Dict[str, Any]) -> int:
        key = (
            GAMES.c.user_id == row["user_id"],
            GAMES.c.source == row["source"],
            GAMES.c.id == row["id"],
        )
        existing = session.execute(
            select(*(GAMES.c[name] for name in CLOCK_COLUMNS + ANALYSIS_COLUMNS)).where(*key)
        ).first()

        if existing is None:
            session.execute(insert(GAMES).values(row))
            LOGGER.debug("Inserted game %s/%s", row["source"], row["id"])
            return 1

        stored = existing._mapping
        merged = dict(row)
        for name in CLOCK_COLUMNS:
            if stored[name] is not None:
                merged[name] = stored[name]
        for name in ANALYSIS_COLUMNS:
            if merged[name] is None:
                merged[name] = stored[name]
        session.execute(update(GAMES).where(*key).values(merged))
        LOGGER.debug("Updated game %s/%s", row["source"], row["id"])
        return 0

    def delete_by_user(self, user_id: int) -> int:
        try:
            with self._sessions.begin() as session:
                result = session.execute(delete(GAMES).where(GAMES.c.user_id == user_id))
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to delete games", exc) from exc
        LOGGER.info("Deleted %d games for user %s", result.rowcount, user_id)
        return int(result.rowcount or 0)

    def update_analysis(
        self,
        game_id: str,
        analysis: AnalysisData,
        user_id: Optional[int] = None,
    ) -> None:
        """Store engine results for one game; stamps ``analyzed_at`` now."""
        validate_game_id(game_id)
        for name in ("blunders", "mistakes", "inaccuracies"):
            validate_count(getattr(analysis, name), name)
        if analysis.accuracy is not None and not 0 <= analysis.accuracy <= 100:
            raise ValidationError("accuracy must be between 0 and 100", "accuracy")

        stmt = (
            update(GAMES)
            .where(GAMES.c.id == game_id)
            .values(
                accuracy=analysis.accuracy,
                blunders=analysis.blunders,
                mistakes=analysis.mistakes,
                inaccuracies=analysis.inaccuracies,
                acpl=analysis.acpl,
                analyzed_at=datetime.now(timezone.utc),
            )
        )
        if user_id is not None:
            stmt = stmt.where(GAMES.c.user_id == user_id)
        try:
            with self._sessions.begin() as session:
                result = session.execute(stmt)
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to update analysis", exc) from exc
        if not result.rowcount:
            raise GameNotFoundError(game_id)


_UNSET: Any = object()


class UserStore(_BaseStore):
    def find_by_id(self, user_id: int) -> Optional[User]:
        rows = self._read(select(USERS).where(USERS.c.id == user_id))
        return _row_to_user(rows[0]) if rows else None

    def find_first(self) -> Optional[User]:
        rows = self._read(select(USERS).order_by(USERS.c.id).limit(1))
        return _row_to_user(rows[0]) if rows else None

    def find_all(self) -> List[User]:
        return [_row_to_user(row) for row in self._read(select(USERS).order_by(USERS.c.id))]

    def exists(self) -> bool:
        return int(self._scalar(select(func.count()).select_from(USERS)) or 0) > 0

    def create(
        self,
        chesscom_username: Optional[str] = None,
        lichess_username: Optional[str] = None,
    ) -> User:
        chesscom = validate_optional_username(chesscom_username, "chesscomUsername")
        lichess = validate_optional_username(lichess_username, "lichessUsername")
        if not chesscom and not lichess:
            raise ValidationError("At least one platform username is required")

        try:
            with self._sessions.begin() as session:
                result = session.execute(
                    insert(USERS).values(
                        chesscom_username=chesscom,
                        lichess_username=lichess,
                        created_at=datetime.now(timezone.utc),
                    )
                )
                user_id = result.inserted_primary_key[0]
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to create user", exc) from exc

        LOGGER.info("Created user %s", user_id)
        return self.find_by_id(user_id)  # type: ignore[return-value]

    def update(
        self,
        user_id: int,
        chesscom_username: Optional[str] = _UNSET,
        lichess_username: Optional[str] = _UNSET,
    ) -> User:
        """Change platform usernames; pass None to clear, omit to keep."""
        current = self.find_by_id(user_id)
        if current is None:
            raise UserNotFoundError(user_id)

        values: Dict[str, Any] = {}
        if chesscom_username is not _UNSET:
            values["chesscom_username"] = validate_optional_username(
                chesscom_username, "chesscomUsername"
            )
        if lichess_username is not _UNSET:
            values["lichess_username"] = validate_optional_username(
                lichess_username, "lichessUsername"
            )
        if not values:
            return current

        try:
            with self._sessions.begin() as session:
                session.execute(update(USERS).where(USERS.c.id == user_id).values(values))
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to update user", exc) from exc
        return self.find_by_id(user_id)  # type: ignore[return-value]

    def update_last_synced(self, user_id: int, when: Optional[datetime] = None) -> None:
        when = when or datetime.now(timezone.utc)
        try:
            with self._sessions.begin() as session:
                session.execute(
                    update(USERS).where(USERS.c.id == user_id).values(last_synced_at=when)
                )
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to update last sync time", exc) from exc

    def delete(self, user_id: int) -> None:
        """Remove the user and every game they own."""
        try:
            with self._sessions.begin() as session:
                session.execute(delete(GAMES).where(GAMES.c.user_id == user_id))
                session.execute(delete(USERS).where(USERS.c.id == user_id))
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to delete user", exc) from exc
        LOGGER.info("Deleted user %s", user_id)

