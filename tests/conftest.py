import copy

import pytest

from reconcile import StoreRejected, StoreUnavailable


class DuplicateKey(StoreRejected):
    pass


class FakeStore:
    """In-memory StoreClient with MongoDB-like collection and unique index behavior."""

    def __init__(self):
        self.collections = {}
        self.calls = []
        self.reject = {}
        self.unavailable = False

    def _check(self, op, name=None):
        self.calls.append((op, name))
        if self.unavailable:
            raise StoreUnavailable("connection refused")
        if name in self.reject.get(op, ()):
            raise StoreRejected(f"{op} denied for {name}")

    def _new_collection(self, validator=None, level=None, action=None):
        return {
            "validator": validator,
            "validationLevel": level,
            "validationAction": action,
            "indexes": {"_id_": {"keys": [("_id", 1)], "unique": True}},
            "docs": [],
        }

    def list_collection_names(self):
        self._check("list_collection_names")
        return list(self.collections)

    def create_collection(self, name, validator, validation_level, validation_action):
        self._check("create_collection", name)
        if name in self.collections:
            raise StoreRejected(f"Collection {name} already exists")
        self.collections[name] = self._new_collection(copy.deepcopy(validator), validation_level, validation_action)

    def modify_collection(self, name, validator, validation_level, validation_action):
        self._check("modify_collection", name)
        if name not in self.collections:
            raise StoreRejected("ns does not exist")
        self.collections[name].update(
            validator=copy.deepcopy(validator), validationLevel=validation_level, validationAction=validation_action
        )

    def list_index_names(self, collection):
        self._check("list_index_names", collection)
        if collection not in self.collections:
            return []
        return list(self.collections[collection]["indexes"])

    def create_index(self, collection, keys, **options):
        self._check("create_index", collection)
        coll = self.collections.setdefault(collection, self._new_collection())
        name = options.pop("name")
        spec = {"keys": list(keys), **options}
        existing = coll["indexes"].get(name)
        if existing is not None and existing != spec:
            raise StoreRejected(f"IndexKeySpecsConflict: index {name} exists with different options")
        coll["indexes"][name] = spec
        return name

    # helpers for tests, not part of the StoreClient surface

    def insert_one(self, collection, doc):
        coll = self.collections.setdefault(collection, self._new_collection())
        for name, spec in coll["indexes"].items():
            if not spec.get("unique") or name == "_id_":
                continue
            fields = [field for field, _ in spec["keys"]]
            if spec.get("sparse") and not any(field in doc for field in fields):
                continue
            key = tuple(doc.get(field) for field in fields)
            for other in coll["docs"]:
                if tuple(other.get(field) for field in fields) == key:
                    raise DuplicateKey(f"E11000 duplicate key error index: {name} dup key: {key}")
        coll["docs"].append(dict(doc))

    def snapshot(self):
        return {
            name: {
                "validator": coll["validator"],
                "validationLevel": coll["validationLevel"],
                "validationAction": coll["validationAction"],
                "indexes": copy.deepcopy(coll["indexes"]),
            }
            for name, coll in self.collections.items()
        }

    def writes(self):
        return [call for call in self.calls if call[0] in ("create_collection", "modify_collection", "create_index")]


@pytest.fixture
def store():
    return FakeStore()
