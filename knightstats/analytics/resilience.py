# ==============================================================================
# resilience.py  –  Comebacks, blown wins and the mental-game score
#
# Without stored evaluation curves, blunder / mistake counts stand in for
# evaluation swings. `classify_game_resilience` accepts real deficit and
# advantage figures for callers that have them.
# ==============================================================================

from __future__ import annotations

from typing import Sequence

from knightstats.analytics.common import pct, round_half_up
from knightstats.models.game import Game
from knightstats.models.records import GameResilience, ResilienceStats

WINNING_THRESHOLD = 150  # centipawns
LOSING_THRESHOLD = -150
VOLATILE_ERRORS = 3
SWING_ERRORS = 2
CP_PER_ERROR = 100


def _is_swingy(game: Game) -> bool:
    analysis = game.analysis
    return analysis.blunders + analysis.mistakes >= SWING_ERRORS and analysis.blunders >= 1


def calculate_resilience_stats(games: Sequence[Game]) -> ResilienceStats:
    """
    Estimate comeback / blown-win behaviour from analysed games.

    A win with at least two blunders+mistakes (one of them a blunder) is
    counted as a comeback, any other win as a converted advantage. A loss
    with the same error profile is counted as a blown win.

    mental_score = clamp(50 + 0.3 * comeback_rate - 0.5 * blow_rate
                         + 20 * converted / analysed, 0, 100), rounded.
    """
    analyzed = [g for g in games if g.analysis is not None]

    comebacks = blown = converted = volatile = 0
    were_losing = were_winning = 0
    deficit_total = lead_total = 0

    for game in analyzed:
        errors = game.analysis.blunders + game.analysis.mistakes
        if errors >= VOLATILE_ERRORS:
            volatile += 1

        if game.is_win:
            if _is_swingy(game):
                were_losing += 1
                comebacks += 1
                deficit_total += CP_PER_ERROR * errors
            else:
                were_winning += 1
                converted += 1
        elif game.is_loss:
            if _is_swingy(game):
                were_winning += 1
                blown += 1
                lead_total += CP_PER_ERROR * errors
            else:
                were_losing += 1

    comeback_rate = pct(comebacks, were_losing)
    blow_rate = pct(blown, were_winning)
    score = 50 + comeback_rate * 0.3 - blow_rate * 0.5 + converted / max(1, len(analyzed)) * 20
    score = min(100.0, max(0.0, score))

    return ResilienceStats(
        comeback_wins=comebacks,
        blown_wins=blown,
        comeback_rate=comeback_rate,
        blow_rate=blow_rate,
        converted_advantages=converted,
        avg_deficit_overcome=deficit_total / comebacks if comebacks else 0.0,
        avg_lead_lost=lead_total / blown if blown else 0.0,
        volatile_games=volatile,
        mental_score=round_half_up(score),
    )


def classify_game_resilience(
    game: Game, max_deficit: int = 0, max_advantage: int = 0
) -> GameResilience:
    """``max_deficit`` / ``max_advantage`` are centipawns from the player's side."""
    swings = 0
    if game.analysis is not None:
        swings = game.analysis.blunders * 2 + game.analysis.mistakes

    return GameResilience(
        game_id=game.id,
        max_deficit=max_deficit,
        max_advantage=max_advantage,
        is_comeback=game.is_win and max_deficit < LOSING_THRESHOLD,
        is_blown_win=game.is_loss and max_advantage > WINNING_THRESHOLD,
        eval_swings=swings,
        result=game.result,
    )
