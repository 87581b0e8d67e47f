# ==============================================================================
# test_streaks_and_days.py  –  Win / loss runs, daily rows, tilt detection
# ==============================================================================

from datetime import datetime, timedelta, timezone

from knightstats.analytics.daily import (
    calculate_date_stats,
    date_key,
    detect_tilt,
    get_games_for_date,
)
from knightstats.analytics.streaks import (
    calculate_current_streak,
    find_longest_loss_streak,
    find_longest_win_streak,
)

START = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


# ------------------------------------------------------------------------------
# Streaks
# ------------------------------------------------------------------------------


def test_longest_and_current_win_streak(from_results):
    games = from_results("WWLWWWW", start=START)

    longest = find_longest_win_streak(games)
    assert longest.count == 4
    assert longest.start_date == games[3].played_at
    assert longest.end_date == games[6].played_at

    current = calculate_current_streak(games)
    assert (current.type, current.count) == ("win", 4)
    assert current.start_date == games[3].played_at
    assert current.end_date == games[6].played_at


def test_draws_do_not_break_a_run(from_results):
    games = from_results("WDWDL", start=START)
    longest = find_longest_win_streak(games)
    assert longest.count == 2
    assert longest.start_date == games[0].played_at
    # the run closes on the game right before the loss, here a draw
    assert longest.end_date == games[3].played_at


def test_current_streak_skips_recent_draws(from_results):
    games = from_results("WLLLDD", start=START)
    current = calculate_current_streak(games)
    assert (current.type, current.count) == ("loss", 3)
    assert current.start_date == games[1].played_at
    assert current.end_date == games[3].played_at


def test_order_of_input_does_not_matter(from_results):
    games = from_results("LWWW", start=START)
    assert calculate_current_streak(list(reversed(games))).count == 3


def test_short_or_missing_streaks(from_results):
    assert calculate_current_streak([]) is None
    assert calculate_current_streak(from_results("DDD")) is None
    assert calculate_current_streak(from_results("LW")) is None
    assert find_longest_win_streak(from_results("WLWL")) is None
    assert find_longest_loss_streak([]) is None


def test_longest_loss_streak(from_results):
    games = from_results("LLWLLLW", start=START)
    streak = find_longest_loss_streak(games)
    assert (streak.type, streak.count) == ("loss", 3)
    assert streak.start_date == games[3].played_at


def test_first_of_equal_runs_is_kept(from_results):
    games = from_results("WWLWW", start=START)
    assert find_longest_win_streak(games).start_date == games[0].played_at


# ------------------------------------------------------------------------------
# Daily
# ------------------------------------------------------------------------------


def test_detect_tilt(from_results):
    assert detect_tilt(from_results("WLLL"))
    assert not detect_tilt(from_results("LLWL"))
    assert not detect_tilt(from_results("LL"))
    assert detect_tilt(from_results("LL"), threshold=2)


def test_date_stats_newest_day_first(make_game, from_results):
    day_one = [
        make_game(played_at=START, rating_change=8),
        make_game(played_at=START + timedelta(hours=1), result="loss", rating_change=-6),
        make_game(played_at=START + timedelta(hours=2), result="draw"),
    ]
    day_two = from_results("LLL", start=START + timedelta(days=1), rating_change=-5)

    rows = calculate_date_stats(day_one + day_two)

    assert [r.date for r in rows] == ["2024-03-02", "2024-03-01"]
    newest, oldest = rows
    assert newest.has_tilt
    assert newest.rating_change == -15
    assert (oldest.games, oldest.wins, oldest.losses, oldest.draws) == (3, 1, 1, 1)
    assert oldest.rating_change == 2
    assert not oldest.has_tilt
    assert oldest.display_date == "Mar 1, 2024"


def test_days_follow_the_reporting_timezone(make_game):
    late = make_game(played_at=datetime(2024, 3, 1, 23, 30, tzinfo=timezone.utc))
    plus_two = timezone(timedelta(hours=2))

    assert date_key(late.played_at, timezone.utc) == "2024-03-01"
    assert date_key(late.played_at, plus_two) == "2024-03-02"
    assert calculate_date_stats([late], plus_two)[0].date == "2024-03-02"
    assert get_games_for_date([late], "2024-03-02", plus_two) == [late]
    assert get_games_for_date([late], "2024-03-02", timezone.utc) == []


def test_games_for_date_newest_first(from_results):
    games = from_results("WLW", start=START)
    assert get_games_for_date(games, "2024-03-01", timezone.utc) == list(reversed(games))
