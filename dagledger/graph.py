"""A directed acyclic graph of transactions with depth, eligibility and seed indices.

Transactions stored in the graph are duck-typed objects exposing ``id``,
``sender``, ``creator`` and ``parent_ids`` (bytes), ``depth``, ``tag``,
``payload``, ``seed_len`` (number of zero bits prefixing the transaction's
seed), ``logical_units()`` and ``is_critical(difficulty)``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from sortedcontainers import SortedDict

from .index import Indexer
from .metrics import Metrics

_U64_MASK = (1 << 64) - 1


@dataclass(frozen=True)
class GraphLimits:
    """Protocol limits that the graph enforces."""

    max_depth_diff: int = 10
    max_parents_per_transaction: int = 32
    tag_nop: int = 0
    tag_max: int = 4


class GraphError(ValueError):
    """A transaction was rejected by the graph."""


class MissingParentsError(GraphError):
    """The transaction was buffered because some of its parents are not in the graph."""


class AlreadyExistsError(GraphError):
    """The transaction already exists in the graph."""


class DepthLimitExceededError(GraphError):
    """A parent of the transaction is too far below it."""


def _is_zero(value: Optional[bytes]) -> bool:
    return value is None or not any(value)


def _hex(value: bytes) -> str:
    return bytes(value).hex()


class Graph:
    """Stores transactions, buffers incomplete ones, and tracks missing ancestors.

    ``signature_verifier``, if given, is called with each new transaction and
    must return True for transactions whose signatures are valid.
    """

    def __init__(
        self,
        root: Any = None,
        *,
        metrics: Optional[Metrics] = None,
        indexer: Optional[Indexer] = None,
        limits: Optional[GraphLimits] = None,
        signature_verifier: Optional[Callable[[Any], bool]] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._metrics = metrics
        self._indexer = indexer
        self._limits = limits or GraphLimits()
        self._verifier = signature_verifier

        self._transactions: dict[bytes, Any] = {}
        self._children: dict[bytes, list[bytes]] = {}
        self._missing: dict[bytes, int] = {}
        self._incomplete: set[bytes] = set()

        # Keyed like ordered trees: one entry per depth, and per (depth, seed length).
        self._eligible: SortedDict = SortedDict()
        self._seeds: SortedDict = SortedDict()
        self._depth_index: dict[int, list[Any]] = {}

        self._height = 0
        self._root_depth = 0

        if root is not None:
            if self._indexer is not None:
                self._indexer.index(_hex(root.id))
            self.update_root(root)

    @property
    def limits(self) -> GraphLimits:
        return self._limits

    def add_transaction(self, tx: Any) -> None:
        """Add a transaction whose ancestry is complete, or buffer it as incomplete.

        Raises AlreadyExistsError, MissingParentsError (after buffering), or
        GraphError for invalid transactions.
        """
        limits = self._limits
        with self._lock:
            if tx.id in self._transactions:
                raise AlreadyExistsError("transaction already exists in the graph")

            if self._root_depth > limits.max_depth_diff + tx.depth:
                raise GraphError(
                    "transactions depth is too low compared to root: root depth is "
                    f"{self._root_depth}, but tx depth is {tx.depth}"
                )

            try:
                self._validate_transaction(tx)
            except GraphError as exc:
                raise GraphError(f"failed to validate transaction: {exc}") from exc

            self._transactions[tx.id] = tx
            self._missing.pop(tx.id, None)

            parents_missing = False

            if self._root_depth != limits.max_parents_per_transaction + tx.depth:
                for parent_id in tx.parent_ids:
                    if parent_id not in self._transactions:
                        parents_missing = True
                        self._missing.setdefault(parent_id, tx.depth)
                    if parent_id in self._incomplete:
                        parents_missing = True
                    self._children.setdefault(parent_id, []).append(tx.id)

            if parents_missing:
                self._incomplete.add(tx.id)
                raise MissingParentsError("parents for transaction are not in graph")

            self._update_graph(tx)

    def mark_transaction_as_missing(self, tx_id: bytes, depth: int) -> None:
        """Record ``tx_id`` as missing, unless it is too far below the root."""
        with self._lock:
            if self._root_depth <= self._limits.max_depth_diff + depth:
                self._missing[tx_id] = depth

    def update_root(self, root: Any) -> None:
        """Forcefully add a root transaction and move the root depth to it."""
        with self._lock:
            self._depth_index.setdefault(root.depth, []).append(root)
            self._eligible[root.depth] = root
            self._transactions[root.id] = root
            self._height = root.depth + 1
        self.update_root_depth(root.depth)

    def update_root_depth(self, root_depth: int) -> None:
        """Set the root depth and drop index entries and missing records left behind."""
        max_diff = self._limits.max_depth_diff
        with self._lock:
            self._root_depth = root_depth

            for tx_id, depth in list(self._missing.items()):
                if root_depth <= max_diff + depth:
                    continue
                self._children.pop(tx_id, None)
                del self._missing[tx_id]

            for depth in list(self._eligible.irange(maximum=root_depth, inclusive=(True, False))):
                del self._eligible[depth]

            stale = []
            for key in self._seeds.keys():
                if key[0] > root_depth:
                    break
                stale.append(key)
            for key in stale:
                del self._seeds[key]

    def prune_below_depth(self, target_depth: int) -> int:
        """Remove every transaction at depth <= ``target_depth``; return logical units removed."""
        count = 0
        with self._lock:
            for depth in [d for d in self._depth_index if d <= target_depth]:
                for tx in self._depth_index[depth]:
                    count += tx.logical_units()

                    self._transactions.pop(tx.id, None)
                    self._children.pop(tx.id, None)
                    self._missing.pop(tx.id, None)
                    self._incomplete.discard(tx.id)

                    self._eligible.pop(tx.depth, None)
                    self._seeds.pop(self._seed_key(tx), None)

                    if self._indexer is not None:
                        self._indexer.index(_hex(tx.id))

                del self._depth_index[depth]

            for tx_id, depth in list(self._missing.items()):
                if depth > target_depth:
                    continue
                self._children.pop(tx_id, None)
                del self._missing[tx_id]
        return count

    def find_eligible_parents(self) -> list[Any]:
        """Leaf transactions near the graph's frontier, deepest first."""
        limits = self._limits
        parents: list[Any] = []
        pending: list[int] = []
        with self._lock:
            top = (self._height - 1) & _U64_MASK
            for depth in reversed(self._eligible.keys()):
                candidate = self._eligible[depth]

                if top >= limits.max_depth_diff + candidate.depth:
                    pending.append(depth)
                    continue

                children = self._children.get(candidate.id, ())
                if any(
                    child not in self._missing and child not in self._incomplete
                    for child in children
                ):
                    pending.append(depth)
                    continue

                parents.append(candidate)
                if len(parents) == limits.max_parents_per_transaction:
                    break

            for depth in pending:
                self._eligible.pop(depth, None)
        return parents

    def find_eligible_critical(self, difficulty: int) -> Optional[Any]:
        """A transaction above the root whose seed has at least ``difficulty`` zero bits."""
        pending: list[tuple[int, int]] = []
        critical = None
        with self._lock:
            for key, tx in self._seeds.items():
                if tx.depth <= self._root_depth or not tx.is_critical(difficulty):
                    pending.append(key)
                    continue
                critical = tx
                break
            for key in pending:
                self._seeds.pop(key, None)
        return critical

    def get_transactions_by_depth(
        self, start: Optional[int] = None, end: Optional[int] = None
    ) -> list[Any]:
        """All indexed transactions whose depth lies in [start, end]."""
        with self._lock:
            return [
                tx
                for depth, bucket in self._depth_index.items()
                if self._in_range(depth, start, end)
                for tx in bucket
            ]

    def missing(self) -> list[bytes]:
        """IDs of missing transactions, ordered by the depth at which they were needed."""
        with self._lock:
            return sorted(self._missing, key=self._missing.__getitem__)

    def list_transactions(
        self,
        offset: int = 0,
        limit: int = 0,
        sender: Optional[bytes] = None,
        creator: Optional[bytes] = None,
    ) -> list[Any]:
        """Transactions by descending depth, filtered by sender or creator, then paged."""
        no_filter = _is_zero(sender) and _is_zero(creator)
        with self._lock:
            selected = [
                tx
                for tx in self._transactions.values()
                if no_filter
                or (not _is_zero(sender) and tx.sender == sender)
                or (not _is_zero(creator) and tx.creator == creator)
            ]
        selected.sort(key=lambda tx: tx.depth, reverse=True)

        if offset or limit:
            if offset >= len(selected):
                return []
            limit = min(limit, len(selected) - offset)
            selected = selected[offset : offset + limit]
        return selected

    def find_transaction(self, tx_id: bytes) -> Optional[Any]:
        with self._lock:
            return self._transactions.get(tx_id)

    def height(self) -> int:
        with self._lock:
            return self._height

    def root_depth(self) -> int:
        with self._lock:
            return self._root_depth

    def missing_len(self) -> int:
        with self._lock:
            return len(self._missing)

    def depth_len(self, start: Optional[int] = None, end: Optional[int] = None) -> int:
        """Number of indexed transactions whose depth lies in [start, end]."""
        with self._lock:
            return sum(
                len(bucket)
                for depth, bucket in self._depth_index.items()
                if self._in_range(depth, start, end)
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._transactions)

    def delete_progeny(self, tx_id: bytes) -> None:
        """Remove a transaction and all of its descendants from the graph."""
        with self._lock:
            stack = [tx_id]
            while stack:
                current = stack.pop()
                children = self._children.pop(current, [])

                tx = self._transactions.pop(current, None)
                if tx is not None:
                    self._eligible.pop(tx.depth, None)
                    self._seeds.pop(self._seed_key(tx), None)
                    bucket = self._depth_index.get(tx.depth)
                    if bucket:
                        self._depth_index[tx.depth] = [it for it in bucket if it.id != tx.id]

                self._missing.pop(current, None)
                self._incomplete.discard(current)

                stack.extend(reversed(children))

    def validate_transaction_parents(self, tx: Any) -> None:
        """Check that all parents are stored and that ``tx`` sits right above the deepest.

        Raises DepthLimitExceededError if a parent is too far below, GraphError otherwise.
        """
        max_diff = self._limits.max_depth_diff
        with self._lock:
            if self._root_depth == max_diff + tx.depth:
                return

            max_depth = 0
            for parent_id in tx.parent_ids:
                parent = self._transactions.get(parent_id)
                if parent is None:
                    raise GraphError("parent not stored in graph")
                if tx.depth > max_diff + parent.depth:
                    raise DepthLimitExceededError(
                        "tx parent has ineligible depth: parents depth is "
                        f"{parent.depth}, but tx depth is {tx.depth}"
                    )
                max_depth = max(max_depth, parent.depth)

            max_depth += 1
            if tx.depth != max_depth:
                raise GraphError(
                    "transactions depth is invalid: expected depth to be "
                    f"{max_depth} but got {tx.depth}"
                )

    @staticmethod
    def _in_range(depth: int, start: Optional[int], end: Optional[int]) -> bool:
        return not ((start is not None and depth < start) or (end is not None and depth > end))

    @staticmethod
    def _seed_key(tx: Any) -> tuple[int, int]:
        return (tx.depth, -tx.seed_len)

    def _children_of(self, tx_id: bytes) -> Iterable[bytes]:
        return iter(list(self._children.get(tx_id, ())))

    def _accept(self, tx: Any) -> None:
        try:
            self.validate_transaction_parents(tx)
        except GraphError:
            self.delete_progeny(tx.id)
            raise

        if self._height < tx.depth + 1:
            self._height = tx.depth + 1

        self._eligible[tx.depth] = tx
        self._seeds[self._seed_key(tx)] = tx
        self._depth_index.setdefault(tx.depth, []).append(tx)

        if self._metrics is not None:
            self._metrics.received_tx.mark(tx.logical_units())

    def _is_complete(self, child: Any) -> bool:
        return all(
            parent_id not in self._incomplete and parent_id in self._transactions
            for parent_id in child.parent_ids
        )

    def _update_graph(self, tx: Any) -> None:
        self._accept(tx)

        stack = [(tx, self._children_of(tx.id))]
        while stack:
            parent, children = stack[-1]
            child_id = next(children, None)
            if child_id is None:
                stack.pop()
                continue

            if child_id not in self._incomplete:
                continue
            child = self._transactions.get(child_id)
            if child is None or not self._is_complete(child):
                continue

            self._incomplete.discard(child_id)
            if self._indexer is not None:
                self._indexer.remove(_hex(parent.id))

            try:
                self._accept(child)
            except GraphError:
                continue
            stack.append((child, self._children_of(child.id)))

    def _validate_transaction(self, tx: Any) -> None:
        limits = self._limits

        if _is_zero(tx.id):
            raise GraphError("tx must have an ID")
        if _is_zero(tx.sender):
            raise GraphError("tx must have sender associated to it")
        if _is_zero(tx.creator):
            raise GraphError("tx must have a creator associated to it")

        parents = list(tx.parent_ids)
        if not parents:
            raise GraphError("transaction has no parents")
        if len(parents) > limits.max_parents_per_transaction:
            raise GraphError(
                f"tx has {len(parents)} parents, but tx may only have "
                f"{limits.max_parents_per_transaction} parents at most"
            )

        seen: set[bytes] = set()
        for previous, current in reversed(list(zip(parents, parents[1:]))):
            if current == tx.id:
                raise GraphError("tx must not include itself in its parents")
            if bytes(previous) > bytes(current):
                raise GraphError("tx must have lexicographically sorted parent ids")
            if current in seen:
                raise GraphError("tx must not have duplicate parent ids")
            seen.add(current)

        if tx.tag > limits.tag_max:
            raise GraphError("tx has an unknown tag")
        if tx.tag != limits.tag_nop and len(tx.payload or b"") == 0:
            raise GraphError("tx must have payload if not a nop transaction")
        if tx.tag == limits.tag_nop and len(tx.payload or b"") != 0:
            raise GraphError("tx must have no payload if is a nop transaction")

        if self._verifier is not None and not self._verifier(tx):
            raise GraphError("tx has invalid signature")