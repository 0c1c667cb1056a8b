"""
Catalog parser: semicolon-delimited catalog files -> typed record tables.

Each catalog variant registers a parser class. A parser knows the fixed field
layout of its files and turns one line into one record; the shared base class
handles line splitting, skipping of malformed lines and last-line-wins keying.

Usage:
    snapshot = parse_catalog(
        {"codes": codes_text, "groups": groups_text, "chapters": chapters_text},
        variant="icd",
        year="2025",
    )
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, Iterator, List, Mapping, Optional, Type

from . import fields as fl
from .normalize import ICD, OPS, check_variant, normalize
from .records import (
    ChapterRecord,
    CodeRecord,
    GroupRecord,
    IcdCodeRecord,
    OpsCodeRecord,
    Snapshot,
    ThreeDigitRecord,
)

logger = logging.getLogger(__name__)

REGISTRY: Dict[str, Type["CatalogParser"]] = {}


def register(variant: str):
    def deco(cls):
        REGISTRY[variant] = cls
        cls.variant = variant
        return cls
    return deco


def get_parser(variant: str) -> "CatalogParser":
    """Instantiate the registered parser for a catalog variant."""
    return REGISTRY[check_variant(variant)]()


def iter_fields(raw_text: Optional[str]) -> Iterator[List[str]]:
    """
    Split raw file content into per-line field lists.

    Blank lines and ``#`` comment lines are dropped; a leading BOM and CRLF
    line endings are tolerated.
    """
    if not raw_text:
        return
    text = raw_text.lstrip("\ufeff")
    for line in text.splitlines():
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        yield line.split(fl.DELIMITER)


def group_key(chapter_id: str, range_start: str, range_end: str) -> str:
    """Groups table key, e.g. ``01:A00..A09``. Chapters reuse the same ranges."""
    if range_start == range_end:
        return f"{chapter_id}:{range_start}"
    return f"{chapter_id}:{range_start}..{range_end}"


def chapter_key(chapter_id: str, variant: str) -> str:
    """ICD chapters are two-digit ("01"), OPS chapters a single digit ("1")."""
    chapter_id = (chapter_id or "").strip()
    if variant == ICD and chapter_id.isdigit():
        return chapter_id.zfill(2)
    return chapter_id


class CatalogParser(ABC):
    """
    Parser for the files of one catalog variant.

    Subclasses implement one method per file kind that converts a list of
    fields into a record (or None to skip the line). The base class enforces
    the minimum field counts from ``fields.MIN_FIELDS``; shorter lines are
    treated as blank or corrupt and skipped without error.
    """

    variant: str

    @property
    def min_fields(self) -> Dict[str, int]:
        return fl.MIN_FIELDS[self.variant]

    def parse(self, raw_text: Optional[str], kind: str) -> Dict[str, object]:
        """
        Parse one file into a mapping of key -> record.

        Args:
            raw_text: Full file content
            kind: One of ``codes``, ``groups``, ``chapters``, ``three_digit``

        Returns:
            Dictionary keyed by canonical code (or chapter id / group range);
            duplicate keys keep the last line
        """
        if kind not in self.min_fields:
            raise ValueError(f"File kind '{kind}' is not supported for variant '{self.variant}'")

        handler = {
            fl.CODES: self.parse_code,
            fl.GROUPS: self.parse_group,
            fl.CHAPTERS: self.parse_chapter,
            fl.THREE_DIGIT: self.parse_three_digit,
        }[kind]
        minimum = self.min_fields[kind]

        table: Dict[str, object] = {}
        skipped = 0
        for parts in iter_fields(raw_text):
            if len(parts) < minimum:
                skipped += 1
                continue
            item = handler(parts)
            if item is None:
                skipped += 1
                continue
            key, record = item
            table[key] = record

        if skipped:
            logger.debug(f"Skipped {skipped} malformed {self.variant} {kind} lines")
        logger.info(f"Parsed {len(table)} {self.variant} {kind} records")
        return table

    @abstractmethod
    def parse_code(self, parts: List[str]):
        raise NotImplementedError

    @abstractmethod
    def parse_group(self, parts: List[str]):
        raise NotImplementedError

    def parse_chapter(self, parts: List[str]):
        chapter_id = chapter_key(fl.field_at(parts, fl.CHAPTER_FIELDS["id"]), self.variant)
        if not chapter_id:
            return None
        description = fl.field_at(parts, fl.CHAPTER_FIELDS["description"])
        return chapter_id, ChapterRecord(id=chapter_id, description=description)

    def parse_three_digit(self, parts: List[str]):
        raise ValueError(f"Variant '{self.variant}' has no three-digit file")

    def _code_values(self, parts: List[str], layout: Mapping[str, int]) -> Optional[Dict[str, object]]:
        code = normalize(fl.field_at(parts, layout["code"]), self.variant)
        if not code:
            return None

        values: Dict[str, object] = {}
        for name, position in layout.items():
            if name in ("code", "tree_position", "subdivision"):
                continue
            raw = fl.field_at(parts, position)
            values[name] = fl.decode_field(name, raw)

        values["code"] = code
        values["is_non_terminal"] = (
            fl.field_at(parts, layout["tree_position"]).upper() == fl.NON_TERMINAL_MARKER
        )
        return values

    def build_snapshot(self, raw_files: Mapping[str, Optional[str]], year: Optional[str] = None) -> Snapshot:
        codes = self.parse(raw_files.get(fl.CODES), fl.CODES)
        groups = self.parse(raw_files.get(fl.GROUPS), fl.GROUPS)
        chapters = self.parse(raw_files.get(fl.CHAPTERS), fl.CHAPTERS)
        return Snapshot(
            variant=self.variant,
            codes=codes,
            chapters=chapters,
            groups=groups,
            year=year,
        )


@register(ICD)
class IcdCatalogParser(CatalogParser):

    def parse_code(self, parts: List[str]):
        values = self._code_values(parts, fl.ICD_CODE_FIELDS)
        if values is None:
            return None
        return values["code"], IcdCodeRecord(**values)

    def parse_group(self, parts: List[str]):
        layout = fl.ICD_GROUP_FIELDS
        start = normalize(fl.field_at(parts, layout["range_start"]), ICD)
        end = normalize(fl.field_at(parts, layout["range_end"]), ICD)
        if not start or not end:
            return None
        record = GroupRecord(
            range_start=start,
            range_end=end,
            description=fl.field_at(parts, layout["description"]),
            chapter_id=chapter_key(fl.field_at(parts, layout["chapter_id"]), ICD),
        )
        return group_key(record.chapter_id, start, end), record


@register(OPS)
class OpsCatalogParser(CatalogParser):

    def parse_code(self, parts: List[str]):
        values = self._code_values(parts, fl.OPS_CODE_FIELDS)
        if values is None:
            return None
        values["three_digit_code"] = normalize(values["three_digit_code"], OPS)
        values["group_start"] = normalize(values["group_start"], OPS)
        return values["code"], OpsCodeRecord(**values)

    def parse_group(self, parts: List[str]):
        layout = fl.OPS_GROUP_FIELDS
        start = normalize(fl.field_at(parts, layout["range_start"]), OPS)
        end = normalize(fl.field_at(parts, layout["range_end"]), OPS)
        if not start or not end:
            return None
        record = GroupRecord(
            range_start=start,
            range_end=end,
            description=fl.field_at(parts, layout["description"]),
            chapter_id=chapter_key(fl.field_at(parts, layout["chapter_id"]), OPS),
        )
        return group_key(record.chapter_id, start, end), record

    def parse_three_digit(self, parts: List[str]):
        layout = fl.THREE_DIGIT_FIELDS
        code = normalize(fl.field_at(parts, layout["code"]), OPS)
        if not code:
            return None
        record = ThreeDigitRecord(
            code=code,
            description=fl.field_at(parts, layout["description"]),
            chapter_id=chapter_key(fl.field_at(parts, layout["chapter_id"]), OPS),
            group_code=normalize(fl.field_at(parts, layout["group_code"]), OPS),
        )
        return code, record

    def build_snapshot(self, raw_files: Mapping[str, Optional[str]], year: Optional[str] = None) -> Snapshot:
        codes = self.parse(raw_files.get(fl.CODES), fl.CODES)
        groups = self.parse(raw_files.get(fl.GROUPS), fl.GROUPS)
        chapters = self.parse(raw_files.get(fl.CHAPTERS), fl.CHAPTERS)
        three_digit = self.parse(raw_files.get(fl.THREE_DIGIT), fl.THREE_DIGIT)
        return Snapshot(
            variant=self.variant,
            codes=integrate_three_digit_codes(codes, three_digit),
            chapters=chapters,
            groups=groups,
            three_digit=three_digit,
            year=year,
        )


def integrate_three_digit_codes(
    codes: Mapping[str, CodeRecord],
    three_digit: Mapping[str, ThreeDigitRecord],
) -> Dict[str, CodeRecord]:
    """
    Merge three-digit OPS codes into the code table.

    Three-digit codes missing from the codes file are added as non-terminal
    records; codes present in both are flagged ``is_three_digit``.
    """
    integrated: Dict[str, CodeRecord] = dict(codes)
    added = 0
    for code, info in three_digit.items():
        existing = integrated.get(code)
        if existing is None:
            integrated[code] = OpsCodeRecord(
                code=code,
                description=info.description,
                is_non_terminal=True,
                level="3",
                chapter_id=info.chapter_id,
                group_start=info.group_code,
                three_digit_code=code,
                is_three_digit=True,
            )
            added += 1
        elif isinstance(existing, OpsCodeRecord):
            integrated[code] = replace(existing, is_three_digit=True)
    if added:
        logger.info(f"Added {added} three-digit codes to the OPS code table")
    return integrated


def parse_catalog(
    raw_files: Mapping[str, Optional[str]],
    variant: str,
    year: Optional[str] = None,
) -> Snapshot:
    """
    Build an immutable snapshot from the raw text of one year's files.

    Args:
        raw_files: Mapping with keys ``codes``, ``groups``, ``chapters`` and,
            for OPS, ``three_digit``; missing entries parse as empty tables
        variant: ``"icd"`` or ``"ops"``
        year: Optional label stored on the snapshot

    Returns:
        Snapshot instance
    """
    parser = get_parser(variant)
    snapshot = parser.build_snapshot(raw_files, year=year)
    logger.info(f"Built {snapshot!r}")
    return snapshot
