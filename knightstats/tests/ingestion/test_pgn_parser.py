# ==============================================================================
# test_pgn_parser.py  –  PGN header / movetext / clock helpers
# ==============================================================================

import pytest

from knightstats.ingestion.pgn_parser import (
    count_moves,
    extract_clocks,
    extract_opening,
    parse_pgn_lines,
    parse_time_control,
    player_move_times,
)

SAMPLE_PGN = """[Event "Live Chess"]
[Date "2024.03.05"]
[ECO "C50"]
[ECOUrl "https://www.chess.com/openings/Italian-Game-Giuoco-Piano"]
[TimeControl "180+2"]

1. e4 {[%clk 0:03:01.9]} 1... e5 {[%clk 0:03:00.5]} 2. Nf3 {[%clk 0:02:59.1]} 2... Nc6 {[%clk 0:02:58]} 3. Bc4 {[%clk 0:02:55.3]} 1-0
"""


def test_parse_pgn_lines_bytes_and_str():
    lines = [b'[Event "Rated Blitz game"]', '[Site "https://lichess.org/abc"]', b"", b"1. e4 e5 2. Nf3 1-0"]
    parsed = parse_pgn_lines(lines)
    assert parsed["event"] == "Rated Blitz game"
    assert parsed["site"] == "https://lichess.org/abc"
    assert parsed["moves"] == "1. e4 e5 2. Nf3 1-0"


def test_extract_opening_falls_back_to_eco_url():
    assert extract_opening(SAMPLE_PGN) == ("C50", "Italian Game Giuoco Piano")
    assert extract_opening("") == ("Unknown", "Unknown Opening")
    assert extract_opening('[ECO "B20"]\n[Opening "Sicilian Defense"]') == ("B20", "Sicilian Defense")


def test_count_moves_ignores_headers_and_clock_comments():
    assert count_moves(SAMPLE_PGN) == 3
    assert count_moves("") == 0


def test_extract_clocks_in_seconds():
    assert extract_clocks(SAMPLE_PGN) == pytest.approx([181.9, 180.5, 179.1, 178.0, 175.3])


def test_parse_time_control():
    assert parse_time_control("180+2") == (180, 2)
    assert parse_time_control("600") == (600, 0)
    assert parse_time_control("1/86400") is None
    assert parse_time_control("abc") is None
    assert parse_time_control(None) is None


def test_player_move_times_adds_increment_and_clamps():
    # 180 → 181.9 with +2 increment means 0.1 s spent
    assert player_move_times([181.9, 179.1], 2, 180) == [0.1, 4.8]
    assert player_move_times([100.0, 105.0], 0, 100) == [0.0, 0.0]
    assert player_move_times([], 2, 180) == []
