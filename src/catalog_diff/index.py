"""
Lookup structures over one catalog snapshot.

Supports:
- Case-insensitive exact lookup (``a001`` finds ``A00.1``)
- Parent/child resolution for both catalog variants
- Wildcard patterns (``*`` and ``%``)
- Group, chapter and OPS three-digit range resolution
"""

import re
import logging
from collections import defaultdict
from typing import Dict, List, Optional

from .normalize import ICD, OPS, lookup_key, normalize
from .parser import chapter_key
from .records import CodeRecord, GroupRecord, Snapshot, ThreeDigitRecord

logger = logging.getLogger(__name__)

_OPS_GROUP_RE = re.compile(r"^(\d-\d{2})")


def icd_base_code(code: str) -> str:
    """Portion before the dot: ``A00`` for ``A00.1``."""
    return code.split(".")[0]


def ops_group_base(code: str) -> Optional[str]:
    """First two digits after the hyphen: ``1-20`` for ``1-202.00``."""
    match = _OPS_GROUP_RE.match(code)
    return match.group(1) if match else None


def ops_chapter_id(code: str) -> str:
    """Leading digit before the first hyphen."""
    return code.split("-")[0]


def wildcard_to_regex(pattern: str) -> "re.Pattern":
    """
    Compile a wildcard pattern.

    ``*`` and ``%`` both mean "zero or more characters"; everything else is
    literal. Matching is case-insensitive and anchored at both ends.
    """
    parts = []
    for char in pattern.strip():
        if char in "*%":
            parts.append(".*")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), flags=re.IGNORECASE)


class CodeIndex:
    """
    Read-only index over a Snapshot.

    Usage:
        index = CodeIndex(snapshot)
        record = index.find_exact("a001")
        children = index.find_children("A00")
        matches = index.find_wildcard_matches("A0*")
        group = index.find_group("A00.1")
    """

    def __init__(self, snapshot: Snapshot):
        self.snapshot = snapshot
        self.variant = snapshot.variant
        self._groups_by_chapter: Dict[str, List[GroupRecord]] = defaultdict(list)
        for group in snapshot.groups.values():
            self._groups_by_chapter[group.chapter_id].append(group)
        for groups in self._groups_by_chapter.values():
            groups.sort(key=lambda g: (g.range_start, g.range_end))

        self._three_digit_by_group: Dict[str, List[ThreeDigitRecord]] = defaultdict(list)
        for record in snapshot.three_digit.values():
            self._three_digit_by_group[record.group_code].append(record)
        for records in self._three_digit_by_group.values():
            records.sort(key=lambda r: r.code)

        logger.info(
            f"Indexed {len(snapshot.codes)} {self.variant} codes "
            f"({len(snapshot.groups)} groups, {len(snapshot.chapters)} chapters)"
        )

    def canonical_key(self, code: str) -> Optional[str]:
        """Resolve any spelling of a code to the canonical key, if present."""
        if code is None:
            return None
        keys = self.snapshot.code_keys
        key = keys.get(lookup_key(normalize(code, self.variant)))
        if key is None:
            key = keys.get(lookup_key(str(code).strip()))
        return key

    def find_exact(self, code: str) -> Optional[CodeRecord]:
        """
        Case-insensitive exact lookup.

        Args:
            code: Code in any supported spelling

        Returns:
            CodeRecord or None if the code does not exist in this snapshot
        """
        key = self.canonical_key(code)
        if key is None:
            logger.debug(f"Code not found: {code}")
            return None
        return self.snapshot.codes[key]

    def find_children(self, parent_code: str) -> List[str]:
        """
        Find child codes of a parent code.

        ICD: every code other than the parent whose undotted form starts with
        the undotted parent (``L40.7`` -> ``L40.70``, ``L40.71``).

        OPS: the parent itself when it is non-terminal, plus every code that
        extends the parent by a dot, letter or digit (``1-20`` -> ``1-20.0``,
        ``1-20a``, ``1-202``).
        """
        parent = normalize(parent_code, self.variant)
        if not parent:
            return []

        if self.variant == ICD:
            undotted_parent = parent.replace(".", "")
            children = [
                code for code in self.snapshot.codes
                if code != parent and code.replace(".", "").startswith(undotted_parent)
                and code.replace(".", "") != undotted_parent
            ]
        else:
            children = []
            for code, record in self.snapshot.codes.items():
                if code == parent:
                    if record.is_non_terminal:
                        children.append(code)
                    continue
                if code.startswith(parent):
                    following = code[len(parent):len(parent) + 1]
                    if following == "." or following.isalpha() or following.isdigit():
                        children.append(code)

        logger.debug(f"Found {len(children)} children for {self.variant} {parent}")
        return sorted(children)

    def find_wildcard_matches(self, pattern: str) -> List[str]:
        """All codes matching a ``*``/``%`` wildcard pattern, sorted."""
        regex = wildcard_to_regex(pattern)
        return sorted(code for code in self.snapshot.codes if regex.fullmatch(code))

    def _chapter_of(self, code: str) -> Optional[str]:
        if self.variant == ICD:
            record = self.snapshot.codes.get(code)
            if record is None or not record.chapter_id:
                return None
            return chapter_key(record.chapter_id, ICD)
        return ops_chapter_id(code)

    def find_group_record(self, code: str) -> Optional[GroupRecord]:
        """
        Resolve the owning group by range containment.

        Only groups of the code's own chapter are searched because several
        chapters reuse the same ranges. Without chapter information all groups
        are searched.
        """
        key = self.canonical_key(code) or normalize(code, self.variant)
        if self.variant == ICD:
            base = icd_base_code(key)
        else:
            base = ops_group_base(key)
            if base is None:
                return None

        chapter = self._chapter_of(key)
        if chapter is not None and chapter in self._groups_by_chapter:
            candidates = self._groups_by_chapter[chapter]
        else:
            candidates = [g for groups in self._groups_by_chapter.values() for g in groups]

        for group in candidates:
            if group.contains(base):
                return group
        return None

    def find_group(self, code: str) -> Optional[str]:
        """Description of the owning group or None."""
        group = self.find_group_record(code)
        return group.description if group else None

    def find_chapter(self, code: str) -> Optional[str]:
        """
        Description of the owning chapter or None.

        ICD reads the chapter id stored on the record; OPS derives it from the
        leading digit of the code.
        """
        key = self.canonical_key(code) or normalize(code, self.variant)
        chapter = self._chapter_of(key)
        if not chapter:
            return None
        record = self.snapshot.chapters.get(chapter)
        return record.description if record else None

    def find_three_digit_range(self, code: str) -> Optional[ThreeDigitRecord]:
        """
        Resolve the OPS three-digit record for a code.

        Tries an exact match on the code without its dot part, then on the
        ``D-DD`` prefix, then range containment: within the code's group, the
        three-digit record with the greatest code not above the code's base.
        Always None for ICD.
        """
        if self.variant != OPS or not self.snapshot.three_digit:
            return None
        key = self.canonical_key(code) or normalize(code, OPS)
        base = key.split(".")[0]
        keys = self.snapshot.three_digit_keys

        for candidate in (base, ops_group_base(key)):
            if not candidate:
                continue
            match = keys.get(lookup_key(candidate))
            if match is not None:
                return self.snapshot.three_digit[match]

        group = self.find_group_record(key)
        if group is None:
            return None
        owner = None
        for record in self._three_digit_by_group.get(group.range_start, []):
            if record.code <= base:
                owner = record
            else:
                break
        return owner

    def __contains__(self, code: str) -> bool:
        return self.canonical_key(code) is not None

    def __len__(self) -> int:
        return len(self.snapshot.codes)

    def __repr__(self) -> str:
        return (
            f"CodeIndex(variant='{self.variant}', year={self.snapshot.year!r}, "
            f"total_codes={len(self.snapshot.codes)})"
        )
