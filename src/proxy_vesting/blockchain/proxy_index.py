"""
Disambiguation indices for anonymous proxy creation.

``proxy.anonymous`` derives the new account from the creator, the proxy type
and an index, so two creations with the same index collide. The allocator is
an immutable value: allocating returns the indices together with the
allocator to use next.
"""

from __future__ import annotations

from dataclasses import dataclass

from proxy_vesting.core.constants import DEFAULT_PROXY_INDEX_START
from proxy_vesting.core.exceptions import InvalidInputError


@dataclass(frozen=True)
class ProxyIndexAllocator:
    next_index: int = DEFAULT_PROXY_INDEX_START

    def __post_init__(self) -> None:
        if isinstance(self.next_index, bool) or not isinstance(self.next_index, int) or self.next_index < 0:
            raise InvalidInputError(f"Proxy index must be a non-negative integer, got {self.next_index!r}")

    def allocate(self, count: int) -> tuple[list[int], "ProxyIndexAllocator"]:
        """Reserve ``count`` consecutive indices."""
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise InvalidInputError(f"Cannot allocate {count!r} proxy indices")
        indices = list(range(self.next_index, self.next_index + count))
        return indices, ProxyIndexAllocator(self.next_index + count)
