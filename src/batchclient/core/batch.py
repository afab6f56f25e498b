"""
Batch model.

Splits an ordered collection of requests into bounded, order-preserving
batches that keep each request's original key.
"""

from dataclasses import dataclass, field
from typing import Any, Hashable, Iterator, List, Mapping, Sequence, Tuple, Union

from batchclient.core.message import Request

RequestCollection = Union[Mapping[Hashable, Request], Sequence[Request]]


@dataclass
class Batch:
    """
    A bounded slice of the caller's requests, run with internal concurrency.

    Attributes:
        index: Position of this batch in the dispatch sequence
        entries: (original key, request) pairs in input order
    """

    index: int
    entries: List[Tuple[Hashable, Request]] = field(default_factory=list)

    @property
    def keys(self) -> List[Hashable]:
        """Original keys in input order."""
        return [key for key, _ in self.entries]

    @property
    def size(self) -> int:
        return len(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Tuple[Hashable, Request]]:
        return iter(self.entries)

    def __repr__(self) -> str:
        return f"Batch(index={self.index}, size={self.size})"


def keyed_items(requests: RequestCollection) -> List[Tuple[Hashable, Any]]:
    """Pair every request with its key: mapping keys, or positions for sequences."""
    if isinstance(requests, Mapping):
        return list(requests.items())
    return list(enumerate(requests))


def result_order_key(key: Hashable) -> Tuple[int, Any]:
    """
    Sort key giving every request key a place in one ascending order.

    Numbers come first in numeric order, then strings in lexical order, then
    any other keys grouped by type and ordered by their repr.
    """
    if isinstance(key, (int, float)):
        return (0, key)
    if isinstance(key, str):
        return (1, key)
    return (2, (type(key).__name__, repr(key)))


def partition(requests: RequestCollection, batch_size: int) -> List[Batch]:
    """
    Partition requests into consecutive batches of at most ``batch_size``.

    Batches are disjoint and exhaustive, and concatenating their keys
    reproduces the input key order.

    Args:
        requests: Ordered mapping of key to request, or a sequence of requests
        batch_size: Maximum number of requests per batch

    Returns:
        List of batches in input order (empty for empty input)

    Raises:
        ValueError: If batch_size is not a positive integer
    """
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        raise ValueError(f"batch_size must be a positive integer, got {batch_size!r}")

    items = keyed_items(requests)
    return [
        Batch(index=number, entries=items[start:start + batch_size])
        for number, start in enumerate(range(0, len(items), batch_size))
    ]
