from datetime import datetime, timedelta, timezone

from schemas import Game, Move, Score
from scoreboard import outcome_for, tally, verify_scores

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
X_WINS = (0, 4, 1, 5, 2)
DRAW = (0, 1, 2, 4, 3, 5, 7, 6, 8)


def game(x, o, cells=(), winner=None):
    moves = [Move(cell=c, player="X" if i % 2 == 0 else "O", at=T0 + timedelta(seconds=i))
             for i, c in enumerate(cells)]
    ended = T0 + timedelta(minutes=1) if winner else None
    return Game(started_at=T0, ended_at=ended, playerX=x, playerO=o, winner=winner, moves=moves)


def test_outcome_for():
    g = game("alice", "bob", X_WINS, "X")
    assert outcome_for(g, "X") == "win"
    assert outcome_for(g, "O") == "loss"
    assert outcome_for(game("alice", "bob", DRAW, "draw"), "O") == "draw"


def test_tally_counts_completed_games_only():
    games = [
        game("alice", "bob", X_WINS, "X"),
        game("bob", "alice", X_WINS, "X"),
        game("alice", "guest-7", DRAW, "draw"),
        game("alice", "bob", (0, 4)),
    ]
    assert tally(games) == {
        "alice": (1, 1, 1),
        "bob": (1, 1, 0),
        "guest-7": (0, 0, 1),
    }


def test_tally_skips_absent_seat():
    assert tally([game("alice", None, X_WINS, "X")]) == {"alice": (1, 0, 0)}


def test_totals_match_participation():
    games = [game("alice", "bob", X_WINS, "X"), game("bob", "alice", DRAW, "draw")]
    for user, (w, l, d) in tally(games).items():
        played = [g for g in games if g.finished and user in (g.playerX, g.playerO)]
        assert w + l + d == len(played)


def test_verify_scores_consistent():
    games = [game("alice", "bob", X_WINS, "X")]
    scores = [Score(user="alice", wins=1), Score(user="bob", losses=1)]
    assert verify_scores(scores, games) == {}


def test_verify_scores_mismatch_and_missing():
    games = [game("alice", "bob", X_WINS, "X")]
    scores = [Score(user="alice", wins=3, losses=1), Score(user="carol", draws=1)]
    assert verify_scores(scores, games) == {
        "alice": ((3, 1, 0), (1, 0, 0)),
        "carol": ((0, 0, 1), (0, 0, 0)),
        "bob": ((0, 0, 0), (0, 1, 0)),
    }
