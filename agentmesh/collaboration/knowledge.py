"""
Knowledge Store
===============

Append-only ledger of knowledge agents choose to share. Entries are keyed
by a monotonic sequence number and timestamp so the ledger can be replayed
in order. There is no update or delete.

Access levels are carried on each entry; enforcing them is the consumer's
job, not the store's.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator
from dataclasses import asdict, dataclass, field, replace
from typing import Any

from agentmesh.core.exceptions import ValidationError
from agentmesh.core.types import AccessLevel, KnowledgeType, parse_enum

@dataclass(frozen=True)
class SharedKnowledgeEntry:
    agent_id: str
    type: KnowledgeType
    payload: Any
    confidence: float = 0.8
    relevance: float = 0.7
    tags: tuple[str, ...] = ()
    access_level: AccessLevel = AccessLevel.PUBLIC
    id: str = ""
    sequence: int = 0
    timestamp: float = 0.0
    collaboration_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["tags"] = list(self.tags)
        return data

@dataclass
class KnowledgeStore:
    """Append-only, replayable knowledge ledger for one collaboration."""

    collaboration_id: str = ""
    _entries: list[SharedKnowledgeEntry] = field(default_factory=list, init=False, repr=False)
    _next_sequence: int = field(default=1, init=False, repr=False)

    def record(self, entry: SharedKnowledgeEntry, *, now: float | None = None) -> SharedKnowledgeEntry:
        """Validate, stamp and append an entry. Returns the stored entry."""
        for label, value in (("confidence", entry.confidence), ("relevance", entry.relevance)):
            if not 0.0 <= value <= 1.0:
                raise ValidationError(f"Knowledge {label} must be within [0, 1], got {value}")
        if not entry.agent_id:
            raise ValidationError("Knowledge entries need an owning agent")

        sequence = self._next_sequence
        self._next_sequence += 1
        stored = replace(
            entry,
            type=parse_enum(KnowledgeType, entry.type, "knowledge type"),
            access_level=parse_enum(AccessLevel, entry.access_level, "access level"),
            tags=tuple(entry.tags),
            id=entry.id or f"knowledge-{sequence:06d}",
            sequence=sequence,
            timestamp=now if now is not None else time.time(),
            collaboration_id=entry.collaboration_id or self.collaboration_id,
        )
        self._entries.append(stored)
        return stored

    def query(
        self,
        *,
        tag: str | None = None,
        access_level: AccessLevel | str | None = None,
        agent_id: str | None = None,
        knowledge_type: KnowledgeType | str | None = None,
    ) -> list[SharedKnowledgeEntry]:
        """Filter entries in ledger order. All filters are ANDed."""
        return list(filter_entries(
            self._entries,
            tag=tag,
            access_level=access_level,
            agent_id=agent_id,
            knowledge_type=knowledge_type,
        ))

    def entries(self) -> list[SharedKnowledgeEntry]:
        return list(self._entries)

    def since(self, sequence: int) -> list[SharedKnowledgeEntry]:
        """Entries with a sequence number strictly greater than ``sequence``."""
        return [e for e in self._entries if e.sequence > sequence]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SharedKnowledgeEntry]:
        return iter(list(self._entries))

def filter_entries(
    entries: Iterable[SharedKnowledgeEntry],
    *,
    tag: str | None = None,
    access_level: AccessLevel | str | None = None,
    agent_id: str | None = None,
    knowledge_type: KnowledgeType | str | None = None,
) -> Iterator[SharedKnowledgeEntry]:
    level = kind = None
    if access_level is not None:
        level = parse_enum(AccessLevel, access_level, "access level")
    if knowledge_type is not None:
        kind = parse_enum(KnowledgeType, knowledge_type, "knowledge type")
    for entry in entries:
        if tag is not None and tag not in entry.tags:
            continue
        if level is not None and entry.access_level != level:
            continue
        if agent_id is not None and entry.agent_id != agent_id:
            continue
        if kind is not None and entry.type != kind:
            continue
        yield entry
