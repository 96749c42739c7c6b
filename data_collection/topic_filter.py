"""Resolve the configured topic list into a recording scope."""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Sequence

from core.errors import InvalidConfig
from sdk.config import WILDCARD


@dataclass(frozen=True)
class TopicScope:
    """What a capture session records.

    ``record_all`` asks the recorder to discover and record every topic, in
    which case ``topics`` is empty.
    """

    record_all: bool
    topics: FrozenSet[str] = frozenset()


def resolve_topics(logged_topics: Sequence[str]) -> TopicScope:
    if not logged_topics:
        raise InvalidConfig("logged_topics is empty")
    if logged_topics[0] == WILDCARD:
        if len(logged_topics) != 1:
            raise InvalidConfig("'*' cannot be combined with explicit topic names")
        return TopicScope(record_all=True)
    if WILDCARD in logged_topics:
        raise InvalidConfig("'*' cannot be combined with explicit topic names")
    if any(not t or not t.strip() for t in logged_topics):
        raise InvalidConfig("logged_topics contains a blank topic name")
    return TopicScope(record_all=False, topics=frozenset(logged_topics))


__all__ = ["TopicScope", "resolve_topics"]
