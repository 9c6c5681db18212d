"""Score aggregates derived from completed games."""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Tuple

from schemas import Game, Score

logger = logging.getLogger(__name__)

Totals = Tuple[int, int, int]  # wins, losses, draws


def outcome_for(game: Game, seat: str) -> str:
    """'win', 'loss' or 'draw' for the given seat of a finished game."""
    if game.winner == "draw":
        return "draw"
    return "win" if game.winner == seat else "loss"


def tally(games: Iterable[Game]) -> Dict[str, Totals]:
    """Wins, losses and draws per participant over all completed games."""
    counts: Dict[str, List[int]] = defaultdict(lambda: [0, 0, 0])
    for game in games:
        if not game.finished:
            continue
        for seat, user in game.seats().items():
            if user is None:
                continue
            position = {"win": 0, "loss": 1, "draw": 2}[outcome_for(game, seat)]
            counts[user][position] += 1
    return {user: tuple(values) for user, values in counts.items()}


def verify_scores(scores: Iterable[Score], games: Iterable[Game]) -> Dict[str, Tuple[Totals, Totals]]:
    """Users whose stored totals disagree with their games, as {user: (stored, expected)}."""
    expected = tally(games)
    mismatches = {}
    for score in scores:
        stored = (score.wins, score.losses, score.draws)
        actual = expected.pop(score.user, (0, 0, 0))
        if stored != actual:
            mismatches[score.user] = (stored, actual)
    # participants with games but no score record
    for user, actual in expected.items():
        mismatches[user] = ((0, 0, 0), actual)
    if mismatches:
        logger.warning(f"{len(mismatches)} score record(s) out of line with game history")
    return mismatches
