"""
fake_view.py - Test Helper for StoreView

Provides a minimal StoreView implementation for testing query functions
without requiring a full DocumentStore.
"""

from __future__ import annotations
from datetime import datetime
import copy
from typing import Any, Dict, Optional


Document = Dict[str, Any]


class FakeView:
    """
    Minimal, immutable StoreView implementation.

    Example:
        view = FakeView(
            documents={'point_profiles': {'alice': {'userId': 'alice', 'balance': 10}}},
            time=datetime(2024, 6, 1)
        )

        view.get('point_profiles', 'alice')
        # Returns: {'userId': 'alice', 'balance': 10}
    """

    def __init__(
        self,
        documents: Optional[Dict[str, Dict[str, Document]]] = None,
        time: Optional[datetime] = None,
    ):
        self._documents = copy.deepcopy(documents or {})
        self._time = time or datetime.now()

    @property
    def current_time(self) -> datetime:
        return self._time

    def get(self, collection: str, key: str) -> Optional[Document]:
        document = self._documents.get(collection, {}).get(key)
        return copy.deepcopy(document)

    def list_documents(self, collection: str) -> Dict[str, Document]:
        return copy.deepcopy(self._documents.get(collection, {}))
