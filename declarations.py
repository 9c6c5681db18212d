"""
Declared collections and indexes of the tic-tac-toe store.

Collections:
- players -> registered players, keyed by username
- games   -> one document per game with its embedded moves
- scores  -> aggregated scoreboard, one document per player identity
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from validators import (
    CollectionValidator,
    ItemsRule,
    ObjectRule,
    Property,
    TypeRule,
    field_of,
)

ASCENDING = 1
DESCENDING = -1
SPECIAL_INDEX_TYPES = ("text", "2d", "2dsphere", "hashed")

VALIDATION_LEVELS = ("off", "strict", "moderate")
VALIDATION_ACTIONS = ("error", "warn")

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class DeclarationError(ValueError):
    """A declaration is malformed; detected before the store is touched."""


def derive_index_name(keys) -> str:
    """Default index name for a key spec: `a_1_b_-1` for [("a", 1), ("b", -1)]."""
    return "_".join(f"{name}_{direction}" for name, direction in keys)


@dataclass(frozen=True)
class IndexDeclaration:
    keys: Tuple[Tuple[str, Any], ...]
    unique: bool = False
    sparse: bool = False
    partial_filter: Optional[Dict[str, Any]] = None
    name: Optional[str] = None

    @property
    def resolved_name(self) -> str:
        return self.name if self.name else derive_index_name(self.keys)

    def validate(self) -> None:
        if not self.keys:
            raise DeclarationError("Index key spec is empty")
        seen = set()
        for key in self.keys:
            if not isinstance(key, tuple) or len(key) != 2:
                raise DeclarationError(f"Index key must be a (field, direction) pair: {key!r}")
            name, direction = key
            if not isinstance(name, str) or not name:
                raise DeclarationError(f"Index field must be a non-empty string: {name!r}")
            if name in seen:
                raise DeclarationError(f"Index field repeated: {name}")
            seen.add(name)
            if isinstance(direction, bool) or (
                direction not in (ASCENDING, DESCENDING) and direction not in SPECIAL_INDEX_TYPES
            ):
                raise DeclarationError(f"Unsupported direction for {name}: {direction!r}")
        if self.name is not None and (not isinstance(self.name, str) or not self.name):
            raise DeclarationError("Explicit index name must be a non-empty string")
        if self.sparse and self.partial_filter is not None:
            raise DeclarationError("sparse and partial_filter cannot be combined")
        if self.partial_filter is not None and not isinstance(self.partial_filter, dict):
            raise DeclarationError("partial_filter must be a mapping")
        if self.unique and any(direction == "hashed" for _, direction in self.keys):
            raise DeclarationError("hashed indexes cannot be unique")

    def options(self) -> Dict[str, Any]:
        """Keyword options for index creation, always tagged with the resolved name."""
        opts: Dict[str, Any] = {"name": self.resolved_name}
        if self.unique:
            opts["unique"] = True
        if self.sparse:
            opts["sparse"] = True
        if self.partial_filter is not None:
            opts["partialFilterExpression"] = self.partial_filter
        return opts

    def describe(self) -> Dict[str, Any]:
        return {"keys": [list(k) for k in self.keys], **self.options()}


@dataclass(frozen=True)
class CollectionDeclaration:
    name: str
    validator: CollectionValidator
    indexes: Tuple[IndexDeclaration, ...] = ()
    validation_level: str = "moderate"
    validation_action: str = "warn"

    def validate(self) -> None:
        if not isinstance(self.name, str) or not self.name or "$" in self.name:
            raise DeclarationError(f"Invalid collection name: {self.name!r}")
        if not isinstance(self.validator, CollectionValidator):
            raise DeclarationError(f"Validator must be a CollectionValidator, got {type(self.validator).__name__}")
        if self.validation_level not in VALIDATION_LEVELS:
            raise DeclarationError(f"Unknown validation level: {self.validation_level!r}")
        if self.validation_action not in VALIDATION_ACTIONS:
            raise DeclarationError(f"Unknown validation action: {self.validation_action!r}")

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "validator": self.validator.to_document(),
            "validationLevel": self.validation_level,
            "validationAction": self.validation_action,
            "indexes": [index.describe() for index in self.indexes],
        }


@dataclass(frozen=True)
class SchemaDeclarationSet:
    version: int
    collections: Tuple[CollectionDeclaration, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[CollectionDeclaration]:
        return iter(self.collections)

    def get(self, name: str) -> Optional[CollectionDeclaration]:
        for collection in self.collections:
            if collection.name == name:
                return collection
        return None

    def describe(self) -> Dict[str, Any]:
        return {"version": self.version, "collections": [c.describe() for c in self.collections]}


def _object_id(description: Optional[str] = None, nullable: bool = False) -> Property:
    types = ("objectId", "null") if nullable else ("objectId",)
    return Property((TypeRule(types),), description)


PLAYERS_VALIDATOR = CollectionValidator(ObjectRule(
    required=("username",),
    properties={
        "_id": _object_id(),
        "username": field_of("string", description="Unique username used to identify a player",
                             min_length=3, max_length=64),
        "email": field_of("string", "null", description="Optional email for the player", pattern=EMAIL_PATTERN),
        "password_hash": field_of("string", "null", description="Optional password hash if authentication is enabled"),
        "created_at": field_of("date", description="Creation timestamp"),
        "display_name": field_of("string", "null", description="Optional name for UI"),
        "avatar_url": field_of("string", "null", description="Optional avatar image URL"),
    },
))

MOVE_RULE = ObjectRule(
    required=("cell", "player", "at"),
    properties={
        "cell": field_of("int", description="Board cell index 0..8", minimum=0, maximum=8),
        "player": field_of("string", description="Player making the move", enum=("X", "O")),
        "at": field_of("date", description="Timestamp of the move"),
    },
    additional_properties=False,
)

GAMES_VALIDATOR = CollectionValidator(ObjectRule(
    required=("started_at",),
    properties={
        "_id": _object_id(),
        "started_at": field_of("date", description="Game start time"),
        "ended_at": field_of("date", "null", description="Game end time"),
        "playerX": field_of("string", "null", description="Username or guest identifier for X"),
        "playerO": field_of("string", "null", description="Username or guest identifier for O"),
        "playerX_id": _object_id("Player _id for X (optional)", nullable=True),
        "playerO_id": _object_id("Player _id for O (optional)", nullable=True),
        "winner": field_of("string", "null", description="Winner of the game", enum=("X", "O", "draw", None)),
        "moves": Property((TypeRule(("array",)), ItemsRule(MOVE_RULE)), "List of moves in the game"),
    },
))

SCORES_VALIDATOR = CollectionValidator(ObjectRule(
    required=("user", "wins", "losses", "draws", "last_updated"),
    properties={
        "_id": _object_id(),
        "user": field_of("string", description="Username or guest identifier, unique"),
        "user_id": _object_id("Reference to players._id (optional)", nullable=True),
        "wins": field_of("int", description="Total wins", minimum=0),
        "losses": field_of("int", description="Total losses", minimum=0),
        "draws": field_of("int", description="Total draws", minimum=0),
        "last_updated": field_of("date", description="Last updated timestamp"),
    },
))

SCHEMA = SchemaDeclarationSet(
    version=1,
    collections=(
        CollectionDeclaration(
            "players",
            PLAYERS_VALIDATOR,
            indexes=(
                IndexDeclaration((("username", ASCENDING),), unique=True, name="ux_players_username"),
                IndexDeclaration((("email", ASCENDING),), unique=True, sparse=True, name="ux_players_email"),
            ),
        ),
        CollectionDeclaration(
            "games",
            GAMES_VALIDATOR,
            indexes=(
                IndexDeclaration((("ended_at", DESCENDING),), name="ix_games_ended_at_desc"),
                IndexDeclaration((("winner", ASCENDING), ("ended_at", DESCENDING)), name="ix_games_winner_ended"),
                IndexDeclaration((("playerX", ASCENDING), ("playerO", ASCENDING)), name="ix_games_players"),
            ),
        ),
        CollectionDeclaration(
            "scores",
            SCORES_VALIDATOR,
            indexes=(
                IndexDeclaration((("user", ASCENDING),), unique=True, name="ux_scores_user"),
                IndexDeclaration((("wins", DESCENDING), ("draws", DESCENDING)), name="ix_scores_leaderboard"),
            ),
        ),
    ),
)


def collection_names(schema: SchemaDeclarationSet = SCHEMA) -> List[str]:
    return [c.name for c in schema]
