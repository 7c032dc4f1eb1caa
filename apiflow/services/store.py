"""
Document store connector

The engine only talks to the DocumentStoreConnector protocol. The
in-memory implementation serves development, the demo endpoints and tests.
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol
import copy
import logging
import uuid

from ..engine.resolver import resolve
from ..errors import NotFoundModelError

logger = logging.getLogger(__name__)

Document = Dict[str, Any]


class DocumentStoreConnector(Protocol):
    """Collection-keyed access to the backing document store"""

    def has_collection(self, collection: str) -> bool: ...

    def collections(self) -> List[str]: ...

    async def find_one(self, collection: str, filter: Document) -> Optional[Document]: ...

    async def find_many(self, collection: str, filter: Document) -> List[Document]: ...

    async def create(self, collection: str, document: Document) -> Document: ...

    async def find_one_and_update(
        self, collection: str, filter: Document, patch: Document
    ) -> Optional[Document]: ...

    async def update_many(self, collection: str, filter: Document, patch: Document) -> Dict[str, int]: ...

    async def delete_one(self, collection: str, filter: Document) -> Dict[str, int]: ...

    async def delete_many(self, collection: str, filter: Document) -> Dict[str, int]: ...


class InMemoryDocumentStore:
    """
    Dict-backed store with explicitly registered collections.

    Filters are equality matches; keys may be dotted paths into nested
    documents. Updates are $set-style shallow merges. Every document handed
    out is a deep copy, so callers never alias stored state.
    """

    def __init__(self, collections: Iterable[str] = ()):
        self._collections: Dict[str, List[Document]] = {}
        for name in collections:
            self.register_collection(name)

    def register_collection(self, name: str) -> None:
        self._collections.setdefault(name, [])

    def has_collection(self, collection: str) -> bool:
        return collection in self._collections

    def collections(self) -> List[str]:
        return list(self._collections.keys())

    def _documents(self, collection: str) -> List[Document]:
        if collection not in self._collections:
            raise NotFoundModelError(collection, self.collections())
        return self._collections[collection]

    @staticmethod
    def _matches(document: Document, filter: Document) -> bool:
        return all(resolve(document, key) == value for key, value in (filter or {}).items())

    async def find_one(self, collection: str, filter: Document) -> Optional[Document]:
        for document in self._documents(collection):
            if self._matches(document, filter):
                return copy.deepcopy(document)
        return None

    async def find_many(self, collection: str, filter: Document) -> List[Document]:
        return [
            copy.deepcopy(document)
            for document in self._documents(collection)
            if self._matches(document, filter)
        ]

    async def create(self, collection: str, document: Document) -> Document:
        documents = self._documents(collection)
        stored = copy.deepcopy(document)
        stored.setdefault("_id", uuid.uuid4().hex)
        documents.append(stored)
        logger.info(f"Inserted document {stored['_id']} into {collection}")
        return copy.deepcopy(stored)

    async def find_one_and_update(
        self, collection: str, filter: Document, patch: Document
    ) -> Optional[Document]:
        for document in self._documents(collection):
            if self._matches(document, filter):
                document.update(copy.deepcopy(patch))
                return copy.deepcopy(document)
        return None

    async def update_many(self, collection: str, filter: Document, patch: Document) -> Dict[str, int]:
        matched = 0
        for document in self._documents(collection):
            if self._matches(document, filter):
                document.update(copy.deepcopy(patch))
                matched += 1
        return {"matchedCount": matched, "modifiedCount": matched}

    async def delete_one(self, collection: str, filter: Document) -> Dict[str, int]:
        documents = self._documents(collection)
        for index, document in enumerate(documents):
            if self._matches(document, filter):
                del documents[index]
                return {"deletedCount": 1}
        return {"deletedCount": 0}

    async def delete_many(self, collection: str, filter: Document) -> Dict[str, int]:
        documents = self._documents(collection)
        kept = [document for document in documents if not self._matches(document, filter)]
        deleted = len(documents) - len(kept)
        documents[:] = kept
        return {"deletedCount": deleted}
