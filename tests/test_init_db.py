from unittest.mock import MagicMock

import pytest

import init_db


@pytest.fixture
def wired(monkeypatch, store):
    db = MagicMock()
    db.name = "tictactoe"
    monkeypatch.setattr(init_db, "get_database", lambda url, name: db)
    monkeypatch.setattr(init_db, "MongoStoreClient", lambda _db: store)
    return db


def test_success_prints_each_item(wired, store, capsys):
    assert init_db.main([]) == 0
    out = capsys.readouterr().out
    assert "Initializing collections in DB: tictactoe" in out
    assert "✓ collection players: created" in out
    assert "✓ index scores.ix_scores_leaderboard: created" in out

    assert init_db.main([]) == 0
    out = capsys.readouterr().out
    assert "✓ collection games: updated" in out
    assert "• index games.ix_games_players: unchanged" in out


def test_failure_exit_code(wired, store, capsys):
    store.reject = {"create_index": {"players"}}
    assert init_db.main([]) == 1
    captured = capsys.readouterr()
    assert "! index players.ux_players_username: failed" in captured.out
    assert "2 item(s) failed" in captured.err


def test_unavailable_exit_code(wired, store):
    store.unavailable = True
    assert init_db.main([]) == 2


def test_unconfigured(monkeypatch):
    monkeypatch.setattr(init_db, "get_database", lambda url, name: None)
    assert init_db.main([]) == 2


def test_seed_runs_after_success(wired, monkeypatch):
    seeded = MagicMock()
    monkeypatch.setattr("seed.seed_example_data", seeded)
    assert init_db.main(["--seed"]) == 0
    seeded.assert_called_once_with(wired)


def test_json_output(wired, capsys):
    assert init_db.main(["--json"]) == 0
    assert '"ok": true' in capsys.readouterr().out
