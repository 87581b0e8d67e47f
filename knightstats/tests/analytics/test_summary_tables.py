# ==============================================================================
# test_summary_tables.py  –  Headline stats, openings, opponents, brackets
# ==============================================================================

from datetime import datetime, timedelta, timezone

import pytest

from knightstats.analytics.opponents import (
    calculate_dynamic_brackets,
    calculate_opponent_stats,
    calculate_rating_brackets,
    find_favorite_opponent,
    find_nemesis,
)
from knightstats.analytics.openings import (
    calculate_openings_by_color,
    find_best_openings,
    find_worst_openings,
)
from knightstats.analytics.stats import (
    calculate_average_game_length,
    calculate_color_performance,
    calculate_opening_stats,
    calculate_rating_progression,
    calculate_stats,
    calculate_time_control_distribution,
    calculate_win_rate_over_time,
    get_unique_openings,
    get_unique_opponents,
    merge_and_sort_games,
    week_key,
)
from knightstats.analytics.terminations import calculate_termination_stats
from knightstats.models.game import Opening, Opponent
from knightstats.models.records import BracketSpec

FRIDAY = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


# ------------------------------------------------------------------------------
# Basic stats
# ------------------------------------------------------------------------------


def test_calculate_stats(from_results):
    stats = calculate_stats(from_results("WWLD"))
    assert (stats.total_games, stats.wins, stats.losses, stats.draws) == (4, 2, 1, 1)
    assert stats.win_rate == 50.0


def test_calculate_stats_empty():
    stats = calculate_stats([])
    assert stats.total_games == 0
    assert stats.win_rate == 0.0


def test_week_key_starts_weeks_on_sunday():
    assert week_key(FRIDAY) == "2024-W09"
    assert week_key(FRIDAY + timedelta(days=1)) == "2024-W09"
    assert week_key(FRIDAY + timedelta(days=2)) == "2024-W10"
    assert week_key(datetime(2024, 1, 1, tzinfo=timezone.utc)) == "2024-W01"


def test_win_rate_over_time_is_weekly_oldest_first(from_results):
    games = from_results("WLWW", start=FRIDAY, step=timedelta(days=1))
    points = calculate_win_rate_over_time(games)
    assert [(p.week, p.games, p.wins) for p in points] == [("2024-W09", 2, 1), ("2024-W10", 2, 2)]
    assert points[0].win_rate == 50.0


def test_opening_stats_skip_unknown_and_generic(make_game):
    games = [
        make_game(opening=Opening("B01", "Scandinavian Defense")),
        make_game(opening=Opening("B01", "Scandinavian Defense"), result="loss"),
        make_game(opening=Opening("C20", "King's Pawn Game")),
        make_game(opening=Opening("C50", "Italian Game")),
        make_game(opening=Opening()),
    ]
    rows = calculate_opening_stats(games)
    assert [(r.eco, r.total, r.wins, r.losses) for r in rows] == [("B01", 2, 1, 1), ("C20", 1, 1, 0)]
    assert [o["eco"] for o in get_unique_openings(games)] == ["B01", "C20", "C50"]


def test_rating_progression_drops_provisional_first_game(make_game):
    games = [
        make_game(played_at=FRIDAY, player_rating=1500),
        make_game(played_at=FRIDAY + timedelta(hours=1), player_rating=1512),
        make_game(played_at=FRIDAY + timedelta(hours=2), player_rating=1700, source="lichess"),
    ]
    assert [p.rating for p in calculate_rating_progression(games)] == [1500, 1512, 1700]

    kept = calculate_rating_progression(games, exclude_provisional=True)
    assert [(p.rating, p.date) for p in kept] == [(1512, "Mar 1, 2024")]


def test_time_control_distribution(make_game):
    games = [make_game(time_class="blitz") for _ in range(3)] + [make_game(time_class="rapid")]
    shares = {s.time_class: s.percentage for s in calculate_time_control_distribution(games)}
    assert shares == {"blitz": 75.0, "rapid": 25.0}


def test_color_performance(make_game):
    games = [
        make_game(player_color="white"),
        make_game(player_color="white", result="loss"),
        make_game(player_color="black"),
    ]
    white, black = calculate_color_performance(games)
    assert (white.color, white.games, white.win_rate) == ("white", 2, 50.0)
    assert (black.color, black.games, black.win_rate) == ("black", 1, 100.0)


def test_average_length_ignores_unknown_lengths(make_game):
    games = [make_game(move_count=20), make_game(move_count=40), make_game(move_count=0)]
    assert calculate_average_game_length(games) == 30.0
    assert calculate_average_game_length([]) == 0.0


def test_unique_opponents_and_merge(make_game):
    a = [make_game(opponent=Opponent("zed", 1500), played_at=FRIDAY)]
    b = [make_game(opponent=Opponent("amy", 1500), played_at=FRIDAY + timedelta(hours=1))]
    merged = merge_and_sort_games(a, b)
    assert merged == [b[0], a[0]]
    assert get_unique_opponents(merged) == ["amy", "zed"]


# ------------------------------------------------------------------------------
# Openings by colour
# ------------------------------------------------------------------------------


@pytest.fixture
def repertoire(make_game):
    def batch(eco, name, results, color="white"):
        lookup = {"W": "win", "L": "loss", "D": "draw"}
        return [
            make_game(opening=Opening(eco, name), result=lookup[r], player_color=color,
                      opponent=Opponent("rival", 1400 + 100 * idx))
            for idx, r in enumerate(results)
        ]

    return (
        batch("C20", "King's Pawn Game", "WWWL")
        + batch("B01", "Scandinavian Defense", "LLW")
        + batch("A00", "Polish Opening", "WW")
        + batch("C50", "Italian Game", "LLLL")
        + batch("B20", "Sicilian Defense", "WLD", color="black")
    )


def test_openings_by_color(repertoire):
    rows = calculate_openings_by_color(repertoire, "white")
    assert [r.eco for r in rows] == ["C20", "B01", "A00"]
    assert rows[0].avg_opponent_rating == 1550
    assert rows[0].win_rate == 75.0
    assert [r.eco for r in calculate_openings_by_color(repertoire, "black")] == ["B20"]


def test_best_and_worst_openings_need_min_games(repertoire):
    assert [o.eco for o in find_best_openings(repertoire, "white")] == ["C20", "B01"]
    assert [o.eco for o in find_worst_openings(repertoire, "white")] == ["B01", "C20"]
    assert [o.eco for o in find_worst_openings(repertoire, "white", limit=1)] == ["B01"]
    assert find_best_openings(repertoire, "white", min_games=5) == []


# ------------------------------------------------------------------------------
# Opponents + brackets
# ------------------------------------------------------------------------------


def test_opponent_stats_fold_case(make_game):
    games = [
        make_game(opponent=Opponent("Bob", 1600), played_at=FRIDAY),
        make_game(opponent=Opponent("bob", 1700), played_at=FRIDAY + timedelta(days=1), result="loss"),
        make_game(opponent=Opponent("carl", 1500)),
    ]
    rows = calculate_opponent_stats(games)
    assert [(r.username, r.games) for r in rows] == [("bob", 2), ("carl", 1)]
    assert rows[0].avg_rating == 1650
    assert rows[0].last_played == FRIDAY + timedelta(days=1)


def test_nemesis_and_favorite(make_game):
    def vs(name, results):
        lookup = {"W": "win", "L": "loss", "D": "draw"}
        return [make_game(opponent=Opponent(name, 1500), result=lookup[r]) for r in results]

    games = vs("bob", "LLW") + vs("carl", "LLL") + vs("dave", "WWL") + vs("eve", "WWWW") + vs("once", "L")

    assert find_nemesis(games).username == "carl"
    assert find_favorite_opponent(games).username == "eve"
    assert find_nemesis(vs("x", "L")) is None
    assert find_favorite_opponent([]) is None


@pytest.mark.parametrize(
    "ratings, expected",
    [
        ([1000, 1500], BracketSpec(min=1000, max=1500, size=100)),
        ([1000, 3000], BracketSpec(min=800, max=3000, size=400)),
        ([1200, 1250], BracketSpec(min=1200, max=1250, size=100)),
        ([1010, 2010], BracketSpec(min=1000, max=2010, size=200)),
    ],
)
def test_dynamic_brackets(make_game, ratings, expected):
    games = [make_game(opponent=Opponent("x", r)) for r in ratings]
    assert calculate_dynamic_brackets(games) == expected


def test_rating_brackets(make_game):
    games = [
        make_game(opponent=Opponent("x", 1000)),
        make_game(opponent=Opponent("y", 1450), result="loss"),
        make_game(opponent=Opponent("z", 1400)),
    ]
    rows = calculate_rating_brackets(games)
    assert [(r.bracket, r.games, r.wins) for r in rows] == [("1000-1099", 1, 1), ("1400-1499", 2, 1)]
    assert rows[1].win_rate == 50.0


def test_brackets_empty():
    assert calculate_dynamic_brackets([]) == BracketSpec(min=0, max=0, size=200)
    assert calculate_rating_brackets([]) == []


# ------------------------------------------------------------------------------
# Terminations
# ------------------------------------------------------------------------------


def test_termination_stats_ignore_draw_side(make_game):
    games = [
        make_game(termination="checkmate"),
        make_game(termination="checkmate", result="loss"),
        make_game(termination="checkmate"),
        make_game(termination="timeout", result="loss"),
        make_game(termination="agreement", result="draw"),
    ]
    rows = {r.termination: r for r in calculate_termination_stats(games)}
    assert (rows["checkmate"].as_winner, rows["checkmate"].as_loser, rows["checkmate"].total) == (2, 1, 3)
    assert rows["timeout"].label == "Timeout"
    assert rows["agreement"].total == 0
    assert calculate_termination_stats(games)[0].termination == "checkmate"
