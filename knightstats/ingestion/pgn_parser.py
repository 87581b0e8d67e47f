# ==============================================================================
# pgn_parser.py  –  Text helpers for PGN blobs embedded in platform payloads
#
# Parses PGN headers and moves, plus the few derived values the canonical
# record needs (opening, move count, per-move clock readings).
# ==============================================================================

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Tuple, Union

from knightstats.models.game import UNKNOWN_ECO, UNKNOWN_OPENING

_HEADER_RE = re.compile(r'^\[(\w+)\s+"(.*)"\]$')
_ECO_RE = re.compile(r'\[ECO\s+"([^"]+)"\]')
_OPENING_RE = re.compile(r'\[Opening\s+"([^"]+)"\]')
_ECO_URL_RE = re.compile(r'\[ECOUrl\s+"[^"]*/openings/([^"]+)"\]')
_MOVE_NUMBER_RE = re.compile(r"(?:^|\s)(\d+)\.")
_COMMENT_RE = re.compile(r"\{[^}]*\}")
_CLOCK_RE = re.compile(r"\[%clk\s+(\d+):(\d+):(\d+(?:\.\d+)?)\]")


def parse_pgn_lines(pgn_lines: Iterable[Union[bytes, str]]) -> Dict[str, str]:
    """
    Parse PGN lines into headers + move string.

    Parameters
    ----------
    pgn_lines : Iterable[bytes | str]
        Raw PGN lines, as streamed or split from a payload.

    Returns
    -------
    Dict[str, str]
        PGN headers (lowercased keys) with a `"moves"` key containing
        the joined movetext.
    """
    game_data: Dict[str, str] = {}
    moves: List[str] = []

    for line in pgn_lines:
        decoded = line.decode("utf-8") if isinstance(line, bytes) else line
        decoded = decoded.strip()

        match = _HEADER_RE.match(decoded)
        if match:
            game_data[match.group(1).lower()] = match.group(2)
        elif decoded:
            moves.append(decoded)

    game_data["moves"] = " ".join(moves)
    return game_data


def extract_opening(pgn: str) -> Tuple[str, str]:
    """
    ``(eco, name)`` from ``[ECO]`` / ``[Opening]`` tags.

    When no ``Opening`` tag is present the ``ECOUrl`` slug is used for the
    name ("Sicilian-Defense-Najdorf" → "Sicilian Defense Najdorf").
    """
    eco_match = _ECO_RE.search(pgn or "")
    name_match = _OPENING_RE.search(pgn or "")

    eco = eco_match.group(1) if eco_match else UNKNOWN_ECO
    if name_match:
        name = name_match.group(1)
    else:
        url_match = _ECO_URL_RE.search(pgn or "")
        name = url_match.group(1).replace("-", " ") if url_match else UNKNOWN_OPENING
    return eco or UNKNOWN_ECO, name or UNKNOWN_OPENING


def count_moves(pgn: str) -> int:
    """Highest ``N.`` move marker in the movetext (0 if none)."""
    movetext = parse_pgn_lines((pgn or "").splitlines())["moves"]
    movetext = _COMMENT_RE.sub(" ", movetext)
    numbers = [int(n) for n in _MOVE_NUMBER_RE.findall(movetext)]
    return max(numbers, default=0)


def extract_clocks(pgn: str) -> List[float]:
    """All ``[%clk h:mm:ss]`` readings in ply order, in seconds."""
    readings: List[float] = []
    for hours, minutes, seconds in _CLOCK_RE.findall(pgn or ""):
        readings.append(int(hours) * 3600 + int(minutes) * 60 + float(seconds))
    return readings


def parse_time_control(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    ``"180+2"`` → ``(180, 2)``; ``"600"`` → ``(600, 0)``.

    Daily controls (``"1/86400"``) and junk return None.
    """
    if not value or "/" in value:
        return None
    base, _, inc = value.partition("+")
    try:
        return int(base), int(inc or 0)
    except ValueError:
        return None


def player_move_times(
    remaining: List[float], increment: int, initial_time: Optional[int] = None
) -> List[float]:
    """
    Seconds spent per move from one side's remaining-clock readings.

    ``remaining[i]`` is the clock after the player's i-th move (increment
    already added). Negative spans, from premoves or clock quirks, clamp to 0.
    """
    spent: List[float] = []
    previous = float(initial_time) if initial_time is not None else None
    for reading in remaining:
        if previous is not None:
            spent.append(round(max(0.0, previous - reading + increment), 2))
        previous = reading
    return spent
