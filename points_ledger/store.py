"""
store.py - Transactional Document Store

DocumentStore is the only module that mutates state. It holds keyed documents
in named collections and applies changes through optimistic-concurrency
transactions, the way a managed document database does.

Key responsibilities:
    - Implements the StoreView protocol for read-only access by query functions
    - Records the read set of every transaction with document versions
    - Commits atomically: all staged writes land together or none do
    - Rejects a commit with TransactionConflict if any read document changed
    - Keeps a commit log for audit and point-in-time reconstruction (clone_at)
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, TypeVar
import copy
import threading

from .core import (
    # Types
    Document, DocumentKey,
    # Constants
    SERVER_TIMESTAMP, APPEND_ONLY_COLLECTIONS,
    # Exceptions
    LedgerError, TransactionConflict, StoreUnavailable, TransactionError,
)

T = TypeVar("T")

# Write operations staged by a transaction.
OP_CREATE = "create"
OP_SET = "set"
OP_UPDATE = "update"


@dataclass(frozen=True, slots=True)
class DocumentWrite:
    """
    Record of one document write inside a commit.

    Stores complete before/after snapshots so the commit log can be unwound.

    Attributes:
        collection: Collection name
        key: Document id
        old_document: Document before the write (None if it did not exist)
        new_document: Document after the write
    """
    collection: str
    key: str
    old_document: Optional[Document]
    new_document: Document

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """Fields that differ between old and new document, as (old, new) pairs."""
        old = self.old_document or {}
        new = self.new_document or {}
        changes = {}
        for name in set(old) | set(new):
            if old.get(name) != new.get(name):
                changes[name] = (old.get(name), new.get(name))
        return changes

    def __repr__(self) -> str:
        kind = "create" if self.old_document is None else "write"
        return f"DocumentWrite({kind} {self.collection}/{self.key})"


@dataclass(frozen=True, slots=True)
class CommitRecord:
    """
    An applied transaction: immutable fact in the commit log.

    Attributes:
        commit_id: Unique id (store + sequence + commit time)
        sequence_number: Monotonic sequence within the store
        commit_time: Store logical time at commit
        writes: Tuple of DocumentWrite in staging order
        read_keys: Documents the transaction read
    """
    commit_id: str
    sequence_number: int
    commit_time: datetime
    writes: Tuple[DocumentWrite, ...]
    read_keys: Tuple[DocumentKey, ...] = ()

    def __repr__(self) -> str:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Commit: ' + self.commit_id)}│",
            f"├{bar}┤",
            f"│{pad('   commit_time : ' + str(self.commit_time))}│",
            f"│{pad('   sequence    : ' + str(self.sequence_number))}│",
            f"│{pad('   reads       : ' + str(len(self.read_keys)))}│",
            f"├{bar}┤",
            f"│{pad(' Writes (' + str(len(self.writes)) + '):')}│",
        ]
        for write in self.writes:
            lines.append(f"│{pad('   [' + write.collection + '/' + write.key + ']')}│")
            for name, (old_val, new_val) in sorted(write.changed_fields().items()):
                lines.append(f"│{pad(f'      {name}: {old_val!r} → {new_val!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


class StoreTransaction:
    """
    A read-then-write unit of work against a DocumentStore.

    Reads go through get() and are recorded with the version observed.
    Writes are staged with create(), set() and update() and only become
    visible when DocumentStore.commit() accepts the transaction.

    All reads must happen before the first write.
    """

    def __init__(self, store: DocumentStore):
        self._store = store
        self._reads: Dict[DocumentKey, int] = {}
        self._snapshots: Dict[DocumentKey, Optional[Document]] = {}
        self._writes: List[Tuple[str, DocumentKey, Document]] = []
        self._staged: Dict[DocumentKey, Optional[Document]] = {}
        self._finished = False

    @property
    def current_time(self) -> datetime:
        """Logical time of the underlying store."""
        return self._store.current_time

    @property
    def read_keys(self) -> Tuple[DocumentKey, ...]:
        return tuple(self._reads)

    @property
    def is_finished(self) -> bool:
        return self._finished

    def _check_open(self) -> None:
        if self._finished:
            raise TransactionError("Transaction already finished")

    def get(self, collection: str, key: str) -> Optional[Document]:
        """
        Read a document and add it to the read set.

        Returns:
            Deep copy of the document, or None if it does not exist

        Raises:
            TransactionError: If called after a write was staged
            StoreUnavailable: If the store is down
        """
        self._check_open()
        if self._writes:
            raise TransactionError(
                f"Read of {collection}/{key} after writes; all reads must precede writes"
            )
        doc_key = (collection, key)
        if doc_key not in self._reads:
            version, document = self._store._read(collection, key)
            self._reads[doc_key] = version
            self._snapshots[doc_key] = document
        return copy.deepcopy(self._snapshots[doc_key])

    def new_id(self, collection: str) -> str:
        """Allocate a fresh document id in a collection."""
        return self._store.new_id(collection)

    def _existing(self, doc_key: DocumentKey) -> Optional[Document]:
        if doc_key in self._staged:
            return self._staged[doc_key]
        if doc_key in self._snapshots:
            return self._snapshots[doc_key]
        return self._store._peek(*doc_key)

    def create(self, collection: str, key: str, data: Document) -> None:
        """Stage creation of a document that must not exist yet."""
        self._check_open()
        doc_key = (collection, key)
        if self._existing(doc_key) is not None:
            raise TransactionError(f"Document {collection}/{key} already exists")
        self._stage(OP_CREATE, doc_key, data)

    def set(self, collection: str, key: str, data: Document) -> None:
        """
        Stage a full overwrite of a document.

        Raises:
            TransactionError: If the document exists in an append-only collection
        """
        self._check_open()
        doc_key = (collection, key)
        if collection in APPEND_ONLY_COLLECTIONS and self._existing(doc_key) is not None:
            raise TransactionError(f"Cannot overwrite {collection}/{key}: collection is append-only")
        self._stage(OP_SET, doc_key, data)

    def update(self, collection: str, key: str, fields: Document) -> None:
        """
        Stage a merge of fields into an existing document.

        Raises:
            TransactionError: If the document is missing or in an append-only collection
        """
        self._check_open()
        doc_key = (collection, key)
        if collection in APPEND_ONLY_COLLECTIONS:
            raise TransactionError(f"Cannot update {collection}/{key}: collection is append-only")
        existing = self._existing(doc_key)
        if existing is None:
            raise TransactionError(f"Cannot update missing document {collection}/{key}")
        self._stage(OP_UPDATE, doc_key, {**existing, **fields})

    def _stage(self, op: str, doc_key: DocumentKey, document: Document) -> None:
        document = copy.deepcopy(document)
        self._writes.append((op, doc_key, document))
        self._staged[doc_key] = document

    def __repr__(self) -> str:
        return f"StoreTransaction({len(self._reads)} reads, {len(self._writes)} writes)"


class DocumentStore:
    """
    In-memory transactional document store with optimistic concurrency.

    Implements the StoreView protocol. Every committed transaction is
    recorded in commit_log, enabling clone_at() for historical state.

    Thread Safety:
        Thread-safe. Reads, id allocation and the version-check-and-apply
        step of commit() run under one reentrant lock, so of several threads
        committing against the same snapshot exactly one succeeds. Open
        transactions themselves belong to a single thread.

    Example:
        store = DocumentStore("hr")
        txn = store.begin()
        project = txn.get("projects", "p1")
        txn.update("projects", "p1", {"pointsDistributed": True})
        store.commit(txn)
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False,
    ):
        """
        Create a store.

        Args:
            name: Store identifier (prefix of generated ids)
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print commits and conflicts (default: True)
            test_mode: Allow put() and set_available() (default: False)
        """
        self.name = name
        self.collections: Dict[str, Dict[str, Document]] = {}
        self.versions: Dict[DocumentKey, int] = {}
        self.commit_log: List[CommitRecord] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        self._available = True
        self._next_sequence: int = 0
        self._next_id: int = 0
        self._lock = threading.RLock()

    # ========================================================================
    # StoreView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the store."""
        return self._current_time

    def get(self, collection: str, key: str) -> Optional[Document]:
        """
        Read a document outside any transaction.

        Returns:
            Deep copy of the document, or None if it does not exist
        """
        with self._lock:
            self._check_available()
            return copy.deepcopy(self._peek(collection, key))

    def list_documents(self, collection: str) -> Dict[str, Document]:
        """Return deep copies of every document in a collection."""
        with self._lock:
            self._check_available()
            return copy.deepcopy(self.collections.get(collection, {}))

    def version_of(self, collection: str, key: str) -> int:
        """Version counter of a document (0 if it never existed)."""
        return self.versions.get((collection, key), 0)

    def list_collections(self) -> List[str]:
        return sorted(self.collections)

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the store's logical clock. Time only moves forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        with self._lock:
            if new_time < self._current_time:
                raise ValueError(
                    f"Cannot move time backwards: {new_time} < {self._current_time}"
                )
            self._current_time = new_time

    # ========================================================================
    # TRANSACTIONS
    # ========================================================================

    def begin(self) -> StoreTransaction:
        """Open a new transaction."""
        self._check_available()
        return StoreTransaction(self)

    def new_id(self, collection: str) -> str:
        """
        Generate a unique document id.

        Format: {store_name}:{collection}:{n:012d}
        Deterministic for a given history, so replayed runs produce the same ids.
        """
        with self._lock:
            n = self._next_id
            self._next_id += 1
        return f"{self.name}:{collection}:{n:012d}"

    def _generate_commit_id(self, sequence: int) -> str:
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"commit:{self.name}:{sequence:012d}:{micros}"

    def commit(self, txn: StoreTransaction) -> Optional[CommitRecord]:
        """
        Commit a transaction atomically.

        Every document in the read set must still be at the version observed
        when it was read. If any is not, nothing is applied.

        Args:
            txn: Transaction opened on this store

        Returns:
            The CommitRecord appended to the log, or None for a read-only transaction

        Raises:
            TransactionConflict: If a read document changed since it was read
            StoreUnavailable: If the store is down
            TransactionError: If the transaction was already finished or
                              belongs to another store
        """
        if txn._store is not self:
            raise TransactionError("Transaction belongs to a different store")

        with self._lock:
            record = self._validate_and_apply(txn)

        if record is not None and self.verbose:
            print(repr(record))
            print("✓ COMMITTED")
        return record

    def _validate_and_apply(self, txn: StoreTransaction) -> Optional[CommitRecord]:
        """Version check and write application. Caller holds self._lock."""
        txn._check_open()
        self._check_available()

        for (collection, key), seen_version in txn._reads.items():
            current_version = self.version_of(collection, key)
            if current_version != seen_version:
                txn._finished = True
                if self.verbose:
                    print(f"✗ CONFLICT: {collection}/{key} at version {current_version}, "
                          f"read at {seen_version}")
                raise TransactionConflict(
                    f"{collection}/{key} changed during transaction "
                    f"(read version {seen_version}, now {current_version})"
                )

        # Blind creates, and blind writes to append-only collections, must
        # still not collide with documents committed meanwhile
        for op, (collection, key), _ in txn._writes:
            blind = (collection, key) not in txn._reads
            guarded = op == OP_CREATE or collection in APPEND_ONLY_COLLECTIONS
            if blind and guarded and self._peek(collection, key) is not None:
                txn._finished = True
                raise TransactionConflict(f"{collection}/{key} was created concurrently")

        txn._finished = True
        if not txn._writes:
            return None

        writes: List[DocumentWrite] = []
        for _, (collection, key), document in txn._writes:
            resolved = self._resolve_timestamps(document)
            old = copy.deepcopy(self._peek(collection, key))
            self.collections.setdefault(collection, {})[key] = resolved
            self.versions[(collection, key)] = self.version_of(collection, key) + 1
            writes.append(DocumentWrite(collection, key, old, copy.deepcopy(resolved)))

        sequence = self._next_sequence
        self._next_sequence += 1
        record = CommitRecord(
            commit_id=self._generate_commit_id(sequence),
            sequence_number=sequence,
            commit_time=self._current_time,
            writes=tuple(writes),
            read_keys=txn.read_keys,
        )
        self.commit_log.append(record)
        return record

    def run_transaction(self, fn: Callable[[StoreTransaction], T]) -> T:
        """
        Run fn inside a transaction and commit it.

        If fn raises, the transaction is discarded and the exception propagates.
        A commit conflict is raised to the caller; no retry happens here.

        Returns:
            Whatever fn returned
        """
        txn = self.begin()
        try:
            result = fn(txn)
        except Exception as e:
            txn._finished = True
            if self.verbose:
                print(f"✗ ABORTED: {type(e).__name__}: {e}")
            raise
        self.commit(txn)
        return result

    # ========================================================================
    # TEST SUPPORT (Mutating, test_mode only)
    # ========================================================================

    def put(self, collection: str, key: str, document: Document) -> None:
        """
        Write a document directly, bumping its version.

        WARNING: Bypasses transactions and the commit log. Only available in
        test mode, for seeding and for simulating out-of-band writers.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "put() is disabled in production mode. "
                "Use begin()/commit() or run_transaction() to write documents. "
                "Set test_mode=True when creating DocumentStore for testing."
            )
        with self._lock:
            self.collections.setdefault(collection, {})[key] = self._resolve_timestamps(document)
            self.versions[(collection, key)] = self.version_of(collection, key) + 1

    def set_available(self, available: bool) -> None:
        """Simulate a backend outage (test mode only)."""
        if not self._test_mode:
            raise LedgerError("set_available() is only available in test mode")
        self._available = available

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _check_available(self) -> None:
        if not self._available:
            raise StoreUnavailable(f"Store {self.name} is unavailable")

    def _peek(self, collection: str, key: str) -> Optional[Document]:
        with self._lock:
            return self.collections.get(collection, {}).get(key)

    def _read(self, collection: str, key: str) -> Tuple[int, Optional[Document]]:
        with self._lock:
            self._check_available()
            return self.version_of(collection, key), copy.deepcopy(self._peek(collection, key))

    def _resolve_timestamps(self, document: Document) -> Document:
        resolved = copy.deepcopy(document)
        for name, value in resolved.items():
            if value is SERVER_TIMESTAMP:
                resolved[name] = self._current_time
        return resolved

    # ========================================================================
    # STORE OPERATIONS
    # ========================================================================

    def clone(self) -> DocumentStore:
        """
        Create a fully independent deep copy of this store, including the
        commit log, versions, id counters and current time.
        """
        cloned = DocumentStore.__new__(DocumentStore)
        cloned._lock = threading.RLock()
        with self._lock:
            cloned.name = self.name
            cloned._current_time = self._current_time
            cloned.verbose = self.verbose
            cloned._test_mode = self._test_mode
            cloned._available = self._available
            cloned.collections = copy.deepcopy(self.collections)
            cloned.versions = dict(self.versions)
            cloned.commit_log = list(self.commit_log)
            cloned._next_sequence = self._next_sequence
            cloned._next_id = self._next_id
        return cloned

    def clone_at(self, target_time: datetime) -> DocumentStore:
        """
        Reconstruct the store as it was at a past time.

        Walks the commit log backwards, restoring each write's old_document
        for commits after target_time. Documents written with put() are
        not in the log and keep their current content.

        Raises:
            ValueError: If target_time is in the future
        """
        if target_time > self._current_time:
            raise ValueError(f"Target time {target_time} is in the future")

        cloned = self.clone()
        history = cloned.commit_log
        cloned._current_time = target_time
        cloned.commit_log = [c for c in history if c.commit_time <= target_time]
        cloned._next_sequence = len(cloned.commit_log)

        for record in reversed(history):
            if record.commit_time <= target_time:
                break
            for write in reversed(record.writes):
                key = (write.collection, write.key)
                if write.old_document is None:
                    cloned.collections.get(write.collection, {}).pop(write.key, None)
                    cloned.versions[key] = cloned.versions.get(key, 1) - 1
                else:
                    cloned.collections.setdefault(write.collection, {})[write.key] = (
                        copy.deepcopy(write.old_document)
                    )
                    cloned.versions[key] = cloned.versions.get(key, 1) - 1

        return cloned

    def document_keys(self) -> Set[DocumentKey]:
        """Every (collection, key) currently stored."""
        with self._lock:
            return {(c, k) for c, docs in self.collections.items() for k in docs}
