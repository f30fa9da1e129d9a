"""
MongoDB repository for the vocabulary catalog and the learner collections.

Both documents are loaded and saved whole. Collection saves are guarded by
the state's `version` token so that two sessions cannot silently overwrite
each other's history.
"""

from __future__ import annotations

import copy
import logging
from typing import Optional, Protocol

from pydantic import ValidationError
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from vocab_core.config import get_db_name, get_mongo_uri
from vocab_core.errors import CatalogLoadError, StaleStateError, TransientPersistenceError
from vocab_core.schemas import CollectionState, VocabularyItem

logger = logging.getLogger(__name__)

# Configuration
CATALOG_COLLECTION = "vocabulary"
STATE_COLLECTION = "collections"

# Global connection pool (reused across requests)
_client: Optional[MongoClient] = None


# ---- Connection Management ----

def get_collection(name: str) -> Collection:
    """
    Get a MongoDB collection from the shared client.

    The client is created on first use and reused for the whole process.

    Raises:
        ValueError: If MONGO_URI is not set
    """
    global _client

    if _client is None:
        _client = MongoClient(
            get_mongo_uri(),
            tz_aware=True,
            maxPoolSize=10,  # Connection pool size
            minPoolSize=1,   # Keep at least 1 connection alive
            maxIdleTimeMS=60000  # Keep connections alive for 60 seconds
        )
    return _client[get_db_name()][name]


# ---- Catalog ----

def load_vocabulary_catalog(collection: Optional[Collection] = None) -> list[VocabularyItem]:
    """
    Load the full catalog ordered by position (easy to hard).

    Raises:
        CatalogLoadError: If the catalog cannot be read or is malformed
    """
    try:
        if collection is None:
            collection = get_collection(CATALOG_COLLECTION)
        docs = list(collection.find({}).sort("position", ASCENDING))
        items = [
            VocabularyItem(
                id=str(doc["_id"]),
                headword=doc["headword"],
                gloss=doc["gloss"],
                position=doc.get("position"),
            )
            for doc in docs
        ]
    except (PyMongoError, ValueError, KeyError, ValidationError) as exc:
        logger.error("Failed to load vocabulary catalog: %s", exc)
        raise CatalogLoadError(f"Could not load the vocabulary catalog ({exc})") from exc

    logger.info("Loaded %d vocabulary items", len(items))
    return items


# ---- Collection State ----

class CollectionStore(Protocol):
    """Whole-document load/save of a learner's collection."""

    def load(self, user_id: str) -> CollectionState:
        ...

    def save(self, state: CollectionState) -> CollectionState:
        ...


class MongoCollectionStore:
    """
    Collection documents in MongoDB, one per learner (`_id` = user id).
    """

    def __init__(self, collection: Optional[Collection] = None):
        self._collection = collection

    @property
    def collection(self) -> Collection:
        if self._collection is None:
            self._collection = get_collection(STATE_COLLECTION)
        return self._collection

    def load(self, user_id: str) -> CollectionState:
        """
        Load a learner's collection (an empty one if nothing is stored).

        Raises:
            TransientPersistenceError: If MongoDB cannot be reached
        """
        try:
            doc = self.collection.find_one({"_id": user_id})
        except PyMongoError as exc:
            raise TransientPersistenceError(f"Failed to load collection for {user_id}: {exc}") from exc

        if doc is None:
            logger.info("No stored collection for %s, starting empty", user_id)
            return CollectionState.new(user_id)
        return CollectionState.from_document(doc)

    def save(self, state: CollectionState) -> CollectionState:
        """
        Save the whole document if the stored version still matches.

        Returns:
            The saved state with its version bumped

        Raises:
            StaleStateError: The stored document changed since `state` was loaded
            TransientPersistenceError: If the write fails
        """
        saved = state.model_copy(update={"version": state.version + 1})
        doc = saved.to_document()

        try:
            if state.version == 0:
                # Version 0 also covers stored documents without a version field
                self.collection.replace_one(
                    {"_id": state.user_id, "version": {"$in": [0, None]}},
                    doc,
                    upsert=True,
                )
            else:
                result = self.collection.replace_one(
                    {"_id": state.user_id, "version": state.version},
                    doc,
                )
                if result.matched_count == 0:
                    raise StaleStateError(state.user_id, state.version)
        except DuplicateKeyError as exc:
            raise StaleStateError(state.user_id, state.version) from exc
        except PyMongoError as exc:
            raise TransientPersistenceError(f"Failed to save collection for {state.user_id}: {exc}") from exc

        return saved


class InMemoryCollectionStore:
    """
    Process-local store with the same version semantics as MongoCollectionStore.
    """

    def __init__(self):
        self._documents: dict[str, dict] = {}

    def load(self, user_id: str) -> CollectionState:
        doc = self._documents.get(user_id)
        if doc is None:
            return CollectionState.new(user_id)
        return CollectionState.from_document(copy.deepcopy(doc))

    def save(self, state: CollectionState) -> CollectionState:
        stored = self._documents.get(state.user_id)
        stored_version = stored.get("version", 0) if stored else 0
        if stored_version != state.version:
            raise StaleStateError(state.user_id, state.version)

        saved = state.model_copy(update={"version": state.version + 1})
        self._documents[state.user_id] = saved.to_document()
        return saved
