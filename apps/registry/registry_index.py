from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from .errors import (
    DuplicateGeckoIdError,
    DuplicateIdError,
    DuplicateKeyError,
    DuplicateModuleError,
    DuplicateNameError,
    DuplicateSlugError,
)
from .models import ParentProtocol, Protocol, RegistryData, RegistryRecord
from .slugs import slugify

EntryKind = Literal['protocol', 'parent']


@dataclass(frozen=True)
class IndexEntry:
    kind: EntryKind
    record: RegistryRecord
    # position in registry order (protocols first, then parents)
    position: int

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def name(self) -> str:
        return self.record.name


def name_key(name: str) -> str:
    return name.strip().lower()


class RegistryIndex:
    """Multiset lookups over the protocol and parent-protocol collections.

    Every index maps a key to the list of entries carrying it, so collisions
    stay visible to the consistency checks. ``strict=True`` instead raises the
    matching :class:`DuplicateKeyError` at the first collision.
    """

    def __init__(self, data: RegistryData, *, strict: bool = False, module_sentinels: Iterable[str] = ()) -> None:
        if not isinstance(data, RegistryData):
            raise TypeError(f'RegistryIndex needs RegistryData, got {type(data).__name__}')
        self.data = data
        self.strict = strict
        self.module_sentinels = frozenset(module_sentinels)

        self.entries: list[IndexEntry] = []
        self.by_id: dict[str, list[IndexEntry]] = {}
        self.by_name: dict[str, list[IndexEntry]] = {}
        self.by_slug: dict[str, list[IndexEntry]] = {}
        self.by_module: dict[str, list[Protocol]] = {}
        self.by_gecko_id: dict[str, list[Protocol]] = {}
        self.parent_ids: frozenset[str] = frozenset(p.id for p in data.parent_protocols)
        self.protocol_ids: frozenset[str] = frozenset(p.id for p in data.protocols)

        records: list[tuple[EntryKind, RegistryRecord]] = [('protocol', p) for p in data.protocols]
        records.extend(('parent', p) for p in data.parent_protocols)
        for position, (kind, record) in enumerate(records):
            self._add(IndexEntry(kind=kind, record=record, position=position))

        for protocol in data.protocols:
            if protocol.module:
                self._insert(self.by_module, protocol.module, protocol, DuplicateModuleError,
                             skip_strict=protocol.module in self.module_sentinels)
            if isinstance(protocol.gecko_id, str) and protocol.gecko_id:
                self._insert(self.by_gecko_id, protocol.gecko_id, protocol, DuplicateGeckoIdError)

    @classmethod
    def build(cls, data: RegistryData, *, strict: bool = False, module_sentinels: Iterable[str] = ()) -> RegistryIndex:
        return cls(data, strict=strict, module_sentinels=module_sentinels)

    def _add(self, entry: IndexEntry) -> None:
        self.entries.append(entry)
        self._insert(self.by_id, entry.id, entry, DuplicateIdError)

        # a record repeating its own name among previousNames is not a collision
        seen_names: set[str] = set()
        for name in entry.record.all_names():
            key = name_key(name)
            if key in seen_names:
                continue
            seen_names.add(key)
            self._insert(self.by_name, key, entry, DuplicateNameError)

        self._insert(self.by_slug, slugify(entry.name), entry, DuplicateSlugError)

    def _insert(self, index: dict, key: str, value, error: type[DuplicateKeyError], *, skip_strict: bool = False) -> None:
        bucket = index.setdefault(key, [])
        if self.strict and bucket and not skip_strict:
            raise error(key, tuple(v.id for v in [*bucket, value]))
        bucket.append(value)

    def get(self, entity_id: str) -> IndexEntry | None:
        entries = self.by_id.get(entity_id)
        return entries[0] if entries else None

    def find_by_name(self, name: str) -> list[IndexEntry]:
        return list(self.by_name.get(name_key(name), []))

    def find_by_slug(self, display_name: str) -> list[IndexEntry]:
        return list(self.by_slug.get(slugify(display_name), []))

    def collisions(self, index: dict) -> dict[str, list]:
        return {key: bucket for key, bucket in index.items() if len(bucket) > 1}

    @property
    def protocols(self) -> list[Protocol]:
        return list(self.data.protocols)

    @property
    def parent_protocols(self) -> list[ParentProtocol]:
        return list(self.data.parent_protocols)

    def __len__(self) -> int:
        return len(self.entries)
