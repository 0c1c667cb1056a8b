"""
Roll a flat diff into a chapter -> group -> code tree.

Chapter and group keys are derived from the code text itself so the tree can
be built without chapter or group metadata. Group and code children are
computed on first access and memoized per node; the result is the same as an
eager build.
"""

from __future__ import annotations

import re
import logging
from collections import defaultdict
from dataclasses import dataclass
from functools import cached_property
from typing import Dict, Iterable, List, Optional, Sequence

from .diff import (
    ADDED,
    CHANGED,
    DEPRECATED,
    NEW,
    REDIRECTED,
    REMOVED,
    REPLACEMENT,
    DiffEntry,
)
from .index import icd_base_code, ops_group_base
from .normalize import ICD, check_variant

logger = logging.getLogger(__name__)

OPS_CHAPTER_TITLES: Dict[str, str] = {
    "1": "Diagnostische Maßnahmen",
    "3": "Bildgebende Diagnostik",
    "5": "Operationen",
    "6": "Medikamente",
    "8": "Nichtoperative therapeutische Maßnahmen",
    "9": "Ergänzende Maßnahmen",
}

_ICD_CHAPTER_RE = re.compile(r"^([A-Z])")
_ICD_GROUP_RE = re.compile(r"^[A-Z]\d{2}$")
_OPS_CHAPTER_RE = re.compile(r"^(\d)")
_OPS_DOT_GROUP_RE = re.compile(r"^(\d)\.(\d{2})")
_OPS_DIGIT_GROUP_RE = re.compile(r"^(\d)(\d{1,2})")


def chapter_key_of(code: str, variant: str) -> Optional[str]:
    """Leading letter (ICD) or leading digit (OPS) of a code."""
    pattern = _ICD_CHAPTER_RE if variant == ICD else _OPS_CHAPTER_RE
    match = pattern.match(code.upper() if variant == ICD else code)
    return match.group(1) if match else None


def group_key_of(code: str, variant: str) -> Optional[str]:
    """
    Group key of a code.

    ICD: letter plus two digits (``A00``). OPS: ``D-DD`` (``1-20``); codes
    without a hyphen fall back to a dotted or digit-only reading, and finally
    to ``D-00``.
    """
    if variant == ICD:
        base = icd_base_code(code.upper())[:3]
        return base if _ICD_GROUP_RE.match(base) else None

    base = ops_group_base(code)
    if base:
        return base
    match = _OPS_DOT_GROUP_RE.match(code)
    if match:
        return f"{match.group(1)}.{match.group(2)}"
    match = _OPS_DIGIT_GROUP_RE.match(code)
    if match:
        return f"{match.group(1)}-{match.group(2).ljust(2, '0')}"
    chapter = chapter_key_of(code, variant)
    return f"{chapter}-00" if chapter else None


def chapter_title(key: str, variant: str) -> str:
    if variant == ICD:
        return f"Chapter {key}"
    return f"{key} - {OPS_CHAPTER_TITLES.get(key, f'Chapter {key}')}"


@dataclass(frozen=True)
class StatusCounts:
    """Rolled-up counts of one tree node."""

    added: int = 0
    removed: int = 0
    changed: int = 0
    new: int = 0
    replacement: int = 0
    deprecated: int = 0
    redirected: int = 0

    @property
    def total(self) -> int:
        return self.added + self.removed + self.changed

    @classmethod
    def from_entries(cls, entries: Iterable[DiffEntry]) -> "StatusCounts":
        counts = defaultdict(int)
        for entry in entries:
            counts[entry.status] += 1
            if entry.sub_status:
                counts[entry.sub_status] += 1
        return cls(
            added=counts[ADDED],
            removed=counts[REMOVED],
            changed=counts[CHANGED],
            new=counts[NEW],
            replacement=counts[REPLACEMENT],
            deprecated=counts[DEPRECATED],
            redirected=counts[REDIRECTED],
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "added": self.added,
            "removed": self.removed,
            "changed": self.changed,
            "total": self.total,
            "new": self.new,
            "replacement": self.replacement,
            "deprecated": self.deprecated,
            "redirected": self.redirected,
        }


class GroupNode:
    """One group of a chapter. ``codes`` are the entries sorted by code."""

    def __init__(self, key: str, entries: Sequence[DiffEntry]):
        self.key = key
        self.title = f"Group {key}"
        self._entries = tuple(entries)
        self.counts = StatusCounts.from_entries(self._entries)

    @cached_property
    def codes(self) -> List[DiffEntry]:
        return sorted(self._entries, key=lambda e: e.code)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"GroupNode({self.key!r}, total={self.counts.total})"


class ChapterNode:
    """
    One chapter of the diff tree.

    Counts are available immediately; ``groups`` is built on first access.
    """

    def __init__(self, key: str, variant: str, entries: Sequence[DiffEntry]):
        self.key = key
        self.variant = variant
        self.title = chapter_title(key, variant)
        self._entries = tuple(entries)
        self.counts = StatusCounts.from_entries(self._entries)

    @cached_property
    def groups(self) -> List[GroupNode]:
        buckets: Dict[str, List[DiffEntry]] = defaultdict(list)
        for entry in self._entries:
            key = group_key_of(entry.code, self.variant) or f"{self.key}-00"
            buckets[key].append(entry)
        logger.debug(f"Expanded {self.variant} chapter {self.key} into {len(buckets)} groups")
        return [GroupNode(key, buckets[key]) for key in sorted(buckets)]

    @property
    def is_expanded(self) -> bool:
        return "groups" in self.__dict__

    def group(self, key: str) -> Optional[GroupNode]:
        for node in self.groups:
            if node.key == key:
                return node
        return None

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ChapterNode({self.title!r}, total={self.counts.total})"


def _chapter_sort_key(node: ChapterNode):
    if node.variant == ICD:
        return (0, node.title)
    return (int(node.key), node.title) if node.key.isdigit() else (10, node.title)


def build_hierarchy(entries: Iterable[DiffEntry], variant: str) -> List[ChapterNode]:
    """
    Build the chapter list for a diff.

    Unchanged entries are left out. ICD chapters are sorted by title, OPS
    chapters numerically by their leading digit.

    Args:
        entries: Output of ``diff_catalogs``
        variant: ``"icd"`` or ``"ops"``

    Returns:
        List of ChapterNode
    """
    variant = check_variant(variant)
    buckets: Dict[str, List[DiffEntry]] = defaultdict(list)
    orphans = 0
    for entry in entries:
        if not entry.is_change:
            continue
        key = chapter_key_of(entry.code, variant)
        if key is None:
            orphans += 1
            continue
        buckets[key].append(entry)

    if orphans:
        logger.warning(f"{orphans} {variant} diff entries have no derivable chapter")

    chapters = [ChapterNode(key, variant, items) for key, items in buckets.items()]
    chapters.sort(key=_chapter_sort_key)
    logger.info(f"Built {variant} diff tree with {len(chapters)} chapters")
    return chapters
