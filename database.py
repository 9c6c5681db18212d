import logging
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError

from reconcile import StoreRejected, StoreUnavailable

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")
MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "").split(",") if origin.strip()]

_clients: Dict[str, MongoClient] = {}


def get_database(url: Optional[str] = None, name: Optional[str] = None) -> Optional[Database]:
    """Database handle from DATABASE_URL / DATABASE_NAME, or None when not configured."""
    url = url or DATABASE_URL
    name = name or DATABASE_NAME
    if not url or not name:
        logger.warning("DATABASE_URL or DATABASE_NAME not set; database unavailable")
        return None
    # one client per URI; MongoClient pools connections internally
    if url not in _clients:
        _clients[url] = MongoClient(url, serverSelectionTimeoutMS=MONGO_TIMEOUT_MS)
    return _clients[url][name]


def _reason(e: PyMongoError) -> str:
    details = getattr(e, "details", None)
    if isinstance(details, dict) and details.get("errmsg"):
        return f"{details.get('codeName', type(e).__name__)}: {details['errmsg']}"
    return str(e) or type(e).__name__


class MongoStoreClient:
    """StoreClient backed by a pymongo Database."""

    def __init__(self, db: Database):
        self.db = db

    def _call(self, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ConnectionFailure as e:
            raise StoreUnavailable(str(e)) from e
        except PyMongoError as e:
            raise StoreRejected(_reason(e)) from e

    def list_collection_names(self) -> List[str]:
        return self._call(self.db.list_collection_names)

    def create_collection(self, name: str, validator: Dict[str, Any],
                          validation_level: str, validation_action: str) -> None:
        self._call(self.db.create_collection, name, validator=validator,
                   validationLevel=validation_level, validationAction=validation_action)

    def modify_collection(self, name: str, validator: Dict[str, Any],
                          validation_level: str, validation_action: str) -> None:
        # command() raises OperationFailure when the reply has ok: 0
        self._call(self.db.command, "collMod", name, validator=validator,
                   validationLevel=validation_level, validationAction=validation_action)

    def list_index_names(self, collection: str) -> List[str]:
        return self._call(lambda: [index["name"] for index in self.db[collection].list_indexes()])

    def create_index(self, collection: str, keys: Sequence[Tuple[str, Any]], **options: Any) -> str:
        return self._call(self.db[collection].create_index, list(keys), **options)
