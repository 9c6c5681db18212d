"""
Example data for local verification.

Safe to re-run: players are matched by username, the example game is only
inserted into an empty games collection, and scores are upserted by user.
"""

import logging
from datetime import timedelta
from typing import Dict, Optional

from bson import ObjectId
from passlib.hash import bcrypt
from pydantic import ValidationError
from pymongo.database import Database

from schemas import Game, Move, Player, Score, utcnow
from scoreboard import tally

logger = logging.getLogger(__name__)


def ensure_player(db: Database, username: str, email: Optional[str] = None,
                  password: Optional[str] = None) -> ObjectId:
    existing = db["players"].find_one({"username": username})
    if existing:
        logger.info(f"Player exists: {username} ({existing['_id']})")
        return existing["_id"]
    player = Player(
        username=username,
        email=email,
        password_hash=bcrypt.hash(password) if password else None,
        display_name=username[:1].upper() + username[1:],
    )
    player_id = db["players"].insert_one(player.to_document()).inserted_id
    logger.info(f"Inserted player: {username} ({player_id})")
    return player_id


def seed_example_game(db: Database, x: str, o: str, x_id: Optional[ObjectId] = None,
                      o_id: Optional[ObjectId] = None) -> Optional[ObjectId]:
    """X takes the top row in five moves. Skipped when any game already exists."""
    if db["games"].find_one({}):
        logger.info("At least one game already exists; skipping game seed")
        return None
    started = utcnow()
    cells = [0, 4, 1, 5, 2]
    moves = [
        Move(cell=cell, player="X" if i % 2 == 0 else "O", at=started + timedelta(seconds=1 + 4 * i))
        for i, cell in enumerate(cells)
    ]
    game = Game(
        started_at=started,
        ended_at=started + timedelta(minutes=1),
        playerX=x,
        playerO=o,
        playerX_id=x_id,
        playerO_id=o_id,
        winner="X",
        moves=moves,
    )
    game_id = db["games"].insert_one(game.to_document()).inserted_id
    logger.info(f"Inserted example game ({x} vs {o}): {game_id}")
    return game_id


def upsert_score(db: Database, user: str, wins: int, losses: int, draws: int,
                 user_id: Optional[ObjectId] = None) -> None:
    score = Score(user=user, user_id=user_id, wins=wins, losses=losses, draws=draws)
    on_insert = {"created_at": score.last_updated}
    if user_id is not None:
        on_insert["user_id"] = user_id
    db["scores"].update_one(
        {"user": user},
        {
            "$setOnInsert": on_insert,
            "$set": {
                "wins": score.wins,
                "losses": score.losses,
                "draws": score.draws,
                "last_updated": score.last_updated,
            },
        },
        upsert=True,
    )


def rebuild_scores(db: Database, player_ids: Optional[Dict[str, ObjectId]] = None) -> Dict[str, tuple]:
    """Recompute every participant's score from the finished games in the store."""
    player_ids = player_ids or {}
    games = []
    for doc in db["games"].find({"ended_at": {"$ne": None}}):
        try:
            games.append(Game.model_validate(doc))
        except ValidationError as e:
            # validators run in warn mode, so non-conforming games can be stored
            logger.warning(f"Skipping game {doc.get('_id')} in score rebuild: {e.error_count()} error(s)")
    totals = tally(games)
    for user, (wins, losses, draws) in totals.items():
        upsert_score(db, user, wins, losses, draws, user_id=player_ids.get(user))
    return totals


def seed_example_data(db: Database) -> Dict[str, tuple]:
    logger.info(f"Seeding example data in DB: {db.name}")
    alice_id = ensure_player(db, "alice", "alice@example.com")
    bob_id = ensure_player(db, "bob", "bob@example.com")
    seed_example_game(db, "alice", "bob", alice_id, bob_id)
    totals = rebuild_scores(db, {"alice": alice_id, "bob": bob_id})
    logger.info("Seed data ready")
    return totals
