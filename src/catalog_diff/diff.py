"""
Diff engine: field-level delta between two snapshots of one catalog variant.

Every key in the union of both code tables produces exactly one DiffEntry.
Added and removed entries are attributed to crosswalk mappings when a
MigrationMap with data is supplied:

- added + listed as a crosswalk target   -> ``replacement``
- added otherwise                         -> ``new``
- removed + crosswalk target available    -> ``redirected``
- removed otherwise                       -> ``deprecated``

Usage:
    entries = diff_catalogs(old_snapshot, new_snapshot, "icd", migration_map)
    changed = [e for e in entries if e.is_change]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from tqdm import tqdm

from .migration import MigrationLink, MigrationMap
from .normalize import check_variant
from .records import CodeRecord, Snapshot

logger = logging.getLogger(__name__)

ADDED = "added"
REMOVED = "removed"
CHANGED = "changed"
UNCHANGED = "unchanged"
STATUSES = (ADDED, REMOVED, CHANGED, UNCHANGED)

NEW = "new"
REPLACEMENT = "replacement"
DEPRECATED = "deprecated"
REDIRECTED = "redirected"
SUB_STATUSES = (NEW, REPLACEMENT, DEPRECATED, REDIRECTED)


@dataclass(frozen=True)
class FieldChange:
    old: Any
    new: Any


@dataclass(frozen=True, eq=False)
class DiffEntry:
    """
    Classification of one code across two catalog years.

    ``field_diffs`` is only populated for ``changed`` entries. For added
    entries ``migration_source`` lists every old code that migrates into this
    one; ``auto_forward``/``auto_backward`` are taken from the first source.
    For removed entries ``migration_target`` names the replacing code.
    """

    code: str
    status: str
    sub_status: Optional[str] = None
    old_record: Optional[CodeRecord] = None
    new_record: Optional[CodeRecord] = None
    field_diffs: Mapping[str, FieldChange] = field(default_factory=dict)
    migration_target: Optional[str] = None
    migration_source: Tuple[str, ...] = ()
    migration_links: Tuple[MigrationLink, ...] = ()
    auto_forward: Optional[bool] = None
    auto_backward: Optional[bool] = None
    variant: Optional[str] = None
    old_year: Optional[str] = None
    new_year: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.field_diffs, MappingProxyType):
            object.__setattr__(self, "field_diffs", MappingProxyType(dict(self.field_diffs)))

    @property
    def record(self) -> Optional[CodeRecord]:
        """Newest available record."""
        return self.new_record if self.new_record is not None else self.old_record

    @property
    def description(self) -> str:
        record = self.record
        return record.description if record is not None else ""

    @property
    def is_change(self) -> bool:
        return self.status != UNCHANGED

    def __repr__(self) -> str:
        sub = f"/{self.sub_status}" if self.sub_status else ""
        return f"DiffEntry({self.code!r}, {self.status}{sub})"


def _comparable(value):
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        return [_comparable(v) for v in value]
    if isinstance(value, Mapping):
        return {k: _comparable(v) for k, v in value.items()}
    return value


def diff_fields(old_record: CodeRecord, new_record: CodeRecord) -> Dict[str, FieldChange]:
    """
    Compare two records field by field.

    Strings are compared after trimming whitespace, containers structurally.
    The reported values are the untrimmed originals.
    """
    old_values = old_record.to_dict()
    new_values = new_record.to_dict()
    changes: Dict[str, FieldChange] = {}
    for name in list(old_values) + [n for n in new_values if n not in old_values]:
        old_value = old_values.get(name)
        new_value = new_values.get(name)
        if _comparable(old_value) != _comparable(new_value):
            changes[name] = FieldChange(old=old_value, new=new_value)
    return changes


def count_statuses(entries: Iterable[DiffEntry]) -> Dict[str, int]:
    """Flat status and sub-status counts."""
    counts = {name: 0 for name in STATUSES + SUB_STATUSES}
    for entry in entries:
        counts[entry.status] += 1
        if entry.sub_status:
            counts[entry.sub_status] += 1
    return counts


def _classify_added(code: str, migration_map: Optional[MigrationMap]) -> Dict[str, Any]:
    links = migration_map.sources_of(code) if migration_map is not None else ()
    if not links:
        return {"sub_status": NEW}
    return {
        "sub_status": REPLACEMENT,
        "migration_source": tuple(link.code for link in links),
        "migration_links": tuple(links),
        "auto_forward": links[0].auto_forward,
        "auto_backward": links[0].auto_backward,
    }


def _classify_removed(code: str, migration_map: Optional[MigrationMap]) -> Dict[str, Any]:
    link = migration_map.target_of(code) if migration_map is not None else None
    if link is None:
        return {"sub_status": DEPRECATED}
    return {
        "sub_status": REDIRECTED,
        "migration_target": link.code,
        "migration_links": (link,),
        "auto_forward": link.auto_forward,
        "auto_backward": link.auto_backward,
    }


def diff_catalogs(
    old: Snapshot,
    new: Snapshot,
    variant: str,
    migration_map: Optional[MigrationMap] = None,
    show_progress: bool = False,
) -> List[DiffEntry]:
    """
    Diff two snapshots of the same catalog variant.

    Args:
        old: Snapshot of the older year
        new: Snapshot of the newer year
        variant: ``"icd"`` or ``"ops"``; must match both snapshots
        migration_map: Optional crosswalk between the two years
        show_progress: Show a tqdm progress bar

    Returns:
        One DiffEntry per key of the union of both code tables, sorted by
        code. Two empty snapshots give an empty list.
    """
    variant = check_variant(variant)
    for snapshot in (old, new):
        if snapshot.variant != variant:
            raise ValueError(
                f"Snapshot variant '{snapshot.variant}' does not match diff variant '{variant}'"
            )

    if not old.codes and not new.codes:
        logger.warning(f"No {variant} codes in either snapshot, nothing to diff")
        return []
    if not old.codes or not new.codes:
        empty_year = old.year if not old.codes else new.year
        logger.warning(f"{variant} snapshot {empty_year} has no codes")

    if migration_map is not None and not migration_map.has_migration_data:
        migration_map = None

    common = {"variant": variant, "old_year": old.year, "new_year": new.year}
    keys = sorted(set(old.codes) | set(new.codes))
    entries: List[DiffEntry] = []

    for code in tqdm(keys, desc=f"Diffing {variant}", unit="code", disable=not show_progress):
        old_record = old.codes.get(code)
        new_record = new.codes.get(code)

        if old_record is None:
            entry = DiffEntry(
                code=code, status=ADDED, new_record=new_record,
                **_classify_added(code, migration_map), **common,
            )
        elif new_record is None:
            entry = DiffEntry(
                code=code, status=REMOVED, old_record=old_record,
                **_classify_removed(code, migration_map), **common,
            )
        else:
            changes = diff_fields(old_record, new_record)
            entry = DiffEntry(
                code=code,
                status=CHANGED if changes else UNCHANGED,
                old_record=old_record,
                new_record=new_record,
                field_diffs=changes,
                **common,
            )
        entries.append(entry)

    counts = count_statuses(entries)
    logger.info(
        f"{variant} diff {old.year}->{new.year}: "
        f"added={counts[ADDED]} (new={counts[NEW]}, replacement={counts[REPLACEMENT]}), "
        f"removed={counts[REMOVED]} (deprecated={counts[DEPRECATED]}, "
        f"redirected={counts[REDIRECTED]}), changed={counts[CHANGED]}, "
        f"unchanged={counts[UNCHANGED]}"
    )
    return entries
