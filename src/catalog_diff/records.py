"""
Typed records for one catalog snapshot.

Records are frozen dataclasses with explicit, variant-specific fields. Flag
fields that a source line does not provide default to ``"-"``; age limits
default to None (no limit).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

NOT_SET = "-"


@dataclass(frozen=True)
class CodeRecord:
    """Fields shared by both catalog variants."""

    code: str
    description: str = ""
    is_non_terminal: bool = False
    level: str = ""
    chapter_id: str = ""
    group_start: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Flat field name -> value mapping, used for field-level diffs."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class IcdCodeRecord(CodeRecord):
    alt_code: str = ""
    compact_code: str = ""
    usage_295: str = NOT_SET
    usage_301: str = NOT_SET
    sex_restriction: str = NOT_SET
    sex_error_type: str = NOT_SET
    min_age: Optional[str] = None
    max_age: Optional[str] = None
    age_error_type: str = NOT_SET
    rare_in_central_europe: str = NOT_SET
    content_assigned: str = NOT_SET
    ifsg_report: str = NOT_SET
    ifsg_lab: str = NOT_SET


@dataclass(frozen=True)
class OpsCodeRecord(CodeRecord):
    three_digit_code: str = ""
    side_required: str = NOT_SET
    validity_khg: str = NOT_SET
    additional_code: str = NOT_SET
    one_time_code: str = NOT_SET
    is_three_digit: bool = False


@dataclass(frozen=True)
class ChapterRecord:
    id: str
    description: str = ""


@dataclass(frozen=True)
class GroupRecord:
    range_start: str
    range_end: str
    description: str = ""
    chapter_id: str = ""

    def contains(self, base_code: str) -> bool:
        return self.range_start <= base_code <= self.range_end


@dataclass(frozen=True)
class ThreeDigitRecord:
    code: str
    description: str = ""
    chapter_id: str = ""
    group_code: str = ""


@dataclass(frozen=True, eq=False)
class Snapshot:
    """
    One parsed catalog (one variant, one year).

    The tables are read-only mappings. ``code_keys`` and ``three_digit_keys``
    map the case-folded code to its canonical key.
    """

    variant: str
    codes: Mapping[str, CodeRecord]
    chapters: Mapping[str, ChapterRecord]
    groups: Mapping[str, GroupRecord]
    three_digit: Mapping[str, ThreeDigitRecord] = field(default_factory=dict)
    year: Optional[str] = None
    code_keys: Mapping[str, str] = field(default_factory=dict)
    three_digit_keys: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze the tables so no caller can mutate a snapshot after handing it out
        for name in ("codes", "chapters", "groups", "three_digit", "code_keys", "three_digit_keys"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))
        if not self.code_keys and self.codes:
            object.__setattr__(
                self, "code_keys", MappingProxyType({k.casefold(): k for k in self.codes})
            )
        if not self.three_digit_keys and self.three_digit:
            object.__setattr__(
                self, "three_digit_keys", MappingProxyType({k.casefold(): k for k in self.three_digit})
            )

    def __len__(self) -> int:
        return len(self.codes)

    def __repr__(self) -> str:
        return (
            f"Snapshot(variant='{self.variant}', year={self.year!r}, "
            f"codes={len(self.codes)}, chapters={len(self.chapters)}, "
            f"groups={len(self.groups)}, three_digit={len(self.three_digit)})"
        )
