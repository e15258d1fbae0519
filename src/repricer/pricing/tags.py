"""Type-tag reconciliation.

Only the three type tags (``used``, ``standard``, ``low-margin``) are ever
touched; every other tag keeps its spelling and relative order.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from ..models import TYPE_TAGS, Regime


def norm_tag(tag: object) -> str:
    return str(tag or "").strip().lower()


def split_tags(raw: object) -> List[str]:
    """Split a Matrixify ``Tags`` cell; duplicates are dropped case-insensitively."""

    if not raw:
        return []
    seen = set()
    out: List[str] = []
    for part in str(raw).split(","):
        tag = part.strip()
        key = tag.lower()
        if not tag or key in seen:
            continue
        seen.add(key)
        out.append(tag)
    return out


def join_tags(tags: Iterable[str]) -> str:
    return ", ".join(tags)


def has_any_tag(tags: Iterable[str], markers: Iterable[str]) -> bool:
    """Case-insensitive exact match of any marker against the tag set."""

    wanted = {norm_tag(m) for m in markers}
    return any(norm_tag(t) in wanted for t in tags)


@dataclass(frozen=True)
class TagOps:
    desired_tags: List[str]
    to_add: List[str] = field(default_factory=list)
    to_remove: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.to_add or self.to_remove)


def reconcile_tags(current: Sequence[str], regime: Regime) -> TagOps:
    """Compute the minimal type-tag change that makes ``current`` match ``regime``.

    ``skip`` proposes nothing and passes the tags through unchanged.
    """

    current = list(current or [])
    if not regime.is_typed:
        return TagOps(desired_tags=current)

    desired = regime.value
    present = {norm_tag(t) for t in current}
    to_add = [desired] if desired not in present else []
    to_remove = [t for t in TYPE_TAGS if t != desired and t in present]

    desired_tags = [t for t in current if norm_tag(t) not in TYPE_TAGS]
    desired_tags.append(desired)
    return TagOps(desired_tags=desired_tags, to_add=to_add, to_remove=to_remove)
