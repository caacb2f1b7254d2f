"""
Key Group Index

In-process index of cache keys by group (the key's namespace prefix), used
for bulk invalidation via clear_group().

The index is advisory: entries that expire inside the backend are not
removed proactively, so members may be stale. Callers deleting a group
must tolerate keys that no longer exist.

Author: System Architect
Date: 2026-01-12
"""

import asyncio

from badge_store.core.models.key_scheme import KeyScheme


class KeyGroupIndex:
    """
    group -> set of keys, with add/remove/pop atomic under one asyncio.Lock.
    """

    def __init__(self):
        self._groups: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()

    async def add(self, key: str) -> str:
        group = KeyScheme.group_of(key)
        async with self._lock:
            self._groups.setdefault(group, set()).add(key)
        return group

    async def discard(self, *keys: str) -> None:
        async with self._lock:
            for key in keys:
                group = KeyScheme.group_of(key)
                members = self._groups.get(group)
                if members is None:
                    continue
                members.discard(key)
                if not members:
                    del self._groups[group]

    async def pop_group(self, group: str) -> set[str]:
        """Remove and return every key indexed under ``group``."""
        async with self._lock:
            return self._groups.pop(group, set())

    async def clear(self) -> None:
        async with self._lock:
            self._groups.clear()

    def members(self, group: str) -> set[str]:
        return set(self._groups.get(group, ()))

    def groups(self) -> list[str]:
        return sorted(self._groups)

    @property
    def group_count(self) -> int:
        return len(self._groups)

    @property
    def key_count(self) -> int:
        return sum(len(members) for members in self._groups.values())
