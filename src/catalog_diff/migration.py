"""
Migration (crosswalk) loader.

A crosswalk links the codes of one catalog year to the codes of the next one.
Each line names an old code, an optional new code and two automatic-mapping
flags (forward and backward). The loader knows nothing about file names; it
only turns raw text into a MigrationMap.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from . import fields as fl
from .normalize import check_variant, normalize
from .parser import iter_fields

logger = logging.getLogger(__name__)

# Doctype, comment or any opening tag; crosswalk lines never start with "<"
_HTML_START_RE = re.compile(r"^<(?:!doctype|!--|[a-z][a-z0-9]*[\s/>])", flags=re.IGNORECASE)


@dataclass(frozen=True)
class MigrationLink:
    """One side of a crosswalk line: the code on the other end plus both flags."""

    code: str
    auto_forward: bool = False
    auto_backward: bool = False


@dataclass(frozen=True, eq=False)
class MigrationMap:
    """
    Read-only crosswalk between two catalog years.

    ``from_old`` maps an old key to its target link, or to None when the code
    was retired without replacement. ``to_new`` maps a new key to every old
    code that migrates into it.
    """

    from_old: Mapping[str, Optional[MigrationLink]] = field(default_factory=dict)
    to_new: Mapping[str, Tuple[MigrationLink, ...]] = field(default_factory=dict)
    has_migration_data: bool = False
    variant: Optional[str] = None
    old_year: Optional[str] = None
    new_year: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.from_old, MappingProxyType):
            object.__setattr__(self, "from_old", MappingProxyType(dict(self.from_old)))
        if not isinstance(self.to_new, MappingProxyType):
            frozen = {key: tuple(links) for key, links in self.to_new.items()}
            object.__setattr__(self, "to_new", MappingProxyType(frozen))

    def target_of(self, old_code: str) -> Optional[MigrationLink]:
        return self.from_old.get(old_code)

    def sources_of(self, new_code: str) -> Tuple[MigrationLink, ...]:
        return self.to_new.get(new_code, ())

    def __len__(self) -> int:
        return len(self.from_old)

    def __repr__(self) -> str:
        return (
            f"MigrationMap(variant={self.variant!r}, {self.old_year}->{self.new_year}, "
            f"from_old={len(self.from_old)}, to_new={len(self.to_new)})"
        )


def empty_migration_map(
    variant: Optional[str] = None,
    old_year: Optional[str] = None,
    new_year: Optional[str] = None,
) -> MigrationMap:
    """Map used when no crosswalk is available."""
    return MigrationMap(variant=variant, old_year=old_year, new_year=new_year)


def looks_like_html(raw_text: Optional[str]) -> bool:
    """True if the text is an HTML page (for example a server error page)."""
    if not raw_text:
        return False
    head = raw_text.lstrip("\ufeff").lstrip()[:64]
    return _HTML_START_RE.match(head) is not None


def _is_automatic(value: str) -> bool:
    return value.strip().upper() == fl.AUTOMATIC_FLAG


def load_migration_map(
    raw_text: Optional[str],
    variant: str,
    old_year: Optional[str] = None,
    new_year: Optional[str] = None,
) -> MigrationMap:
    """
    Parse a crosswalk file.

    Args:
        raw_text: Full crosswalk content; None, empty text and HTML pages
            all yield an empty map
        variant: ``"icd"`` or ``"ops"``
        old_year: Optional label of the older catalog year
        new_year: Optional label of the newer catalog year

    Returns:
        MigrationMap; ``has_migration_data`` is False when nothing usable
        was found
    """
    variant = check_variant(variant)

    if not raw_text or not raw_text.strip():
        logger.warning(f"No {variant} crosswalk data for {old_year}->{new_year}")
        return empty_migration_map(variant, old_year, new_year)
    if looks_like_html(raw_text):
        logger.warning(
            f"{variant} crosswalk for {old_year}->{new_year} is an HTML page, ignoring it"
        )
        return empty_migration_map(variant, old_year, new_year)

    layout = fl.MIGRATION_FIELDS[variant]
    from_old: Dict[str, Optional[MigrationLink]] = {}
    to_new: Dict[str, List[MigrationLink]] = {}
    skipped = 0

    for parts in iter_fields(raw_text):
        if len(parts) < fl.MIGRATION_MIN_FIELDS:
            skipped += 1
            continue

        raw_old = fl.field_at(parts, layout["old"])
        raw_new = fl.field_at(parts, layout["new"])
        if raw_old.upper() in fl.UNDEFINED_CODES:
            skipped += 1
            continue

        old_key = normalize(raw_old, variant)
        auto_forward = _is_automatic(fl.field_at(parts, layout["auto_forward"]))
        auto_backward = _is_automatic(fl.field_at(parts, layout["auto_backward"]))

        if raw_new.upper() in fl.UNDEFINED_CODES:
            # Retired without replacement; never hides a real target
            from_old.setdefault(old_key, None)
            continue

        new_key = normalize(raw_new, variant)
        if new_key == old_key:
            continue

        if from_old.get(old_key) is None:
            from_old[old_key] = MigrationLink(new_key, auto_forward, auto_backward)
        to_new.setdefault(new_key, []).append(
            MigrationLink(old_key, auto_forward, auto_backward)
        )

    if skipped:
        logger.debug(f"Skipped {skipped} unusable {variant} crosswalk lines")

    has_data = bool(from_old or to_new)
    if not has_data:
        logger.warning(f"{variant} crosswalk for {old_year}->{new_year} contains no mappings")
    else:
        logger.info(
            f"Loaded {variant} crosswalk {old_year}->{new_year}: "
            f"{len(from_old)} old codes, {len(to_new)} new codes"
        )

    return MigrationMap(
        from_old=from_old,
        to_new=to_new,
        has_migration_data=has_data,
        variant=variant,
        old_year=old_year,
        new_year=new_year,
    )
