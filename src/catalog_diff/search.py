"""
Code search over one snapshot.

Takes free text with one or more codes (separated by commas, semicolons or
whitespace), resolves each code against a CodeIndex and returns result rows
plus user-facing error messages. Nothing here raises for bad input; every
problem becomes a message in ``SearchResult.errors``.
"""

from __future__ import annotations

import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .index import CodeIndex
from .normalize import ICD, OPS, detect_code_type, is_valid_format, is_wildcard, normalize

logger = logging.getLogger(__name__)

_SPLIT_RE = re.compile(r"[,;\s]+")
_OPS_THREE_DIGIT_INPUT_RE = re.compile(r"^\d-\d{2}$")

FORMAT_HINTS = {
    ICD: "ICD codes must look like A00 or A00.1",
    OPS: "OPS codes must look like 1-20 or 1-202.00",
}


@dataclass
class SearchHit:
    code: str
    description: str = ""
    group: Optional[str] = None
    chapter: Optional[str] = None
    three_digit: Optional[str] = None
    is_non_terminal: bool = False
    is_parent: bool = False
    is_direct_input: bool = True
    parent_code: Optional[str] = None
    virtual_parent: bool = False
    is_terminal: bool = False

    @property
    def is_expanded_child(self) -> bool:
        return self.parent_code is not None


@dataclass
class SearchResult:
    results: List[SearchHit] = field(default_factory=list)
    duplicates_removed: int = 0
    errors: List[str] = field(default_factory=list)

    def codes(self) -> List[str]:
        return [hit.code for hit in self.results]


def parse_user_input(text: Optional[str]) -> Tuple[List[str], int]:
    """
    Split user input into unique codes, keeping first-seen order.

    Returns:
        Tuple of (codes, number of duplicates removed)
    """
    tokens = [token for token in _SPLIT_RE.split(text or "") if token]
    unique = list(dict.fromkeys(tokens))
    return unique, len(tokens) - len(unique)


def is_terminal(hit: SearchHit, variant: str) -> bool:
    """
    Whether a result row is a directly assignable code.

    The two variants keep separate rules: ICD additionally treats codes
    ending in ``-`` as non-terminal.
    """
    terminal = not hit.is_non_terminal and not hit.is_parent and not hit.is_expanded_child
    if variant == ICD:
        terminal = terminal and not hit.code.endswith("-")
    return terminal


class _Searcher:

    def __init__(self, index: CodeIndex, show_child_codes: bool):
        self.index = index
        self.variant = index.variant
        self.show_child_codes = show_child_codes
        self.label = self.variant.upper()
        self.year = index.snapshot.year

    def hit(self, code: str, **flags) -> SearchHit:
        record = self.index.snapshot.codes[code]
        three_digit = None
        if self.variant == OPS:
            owner = self.index.find_three_digit_range(code)
            three_digit = owner.description if owner else ""
        flags.setdefault("description", record.description)
        return SearchHit(
            code=code,
            group=self.index.find_group(code),
            chapter=self.index.find_chapter(code),
            three_digit=three_digit,
            is_non_terminal=record.is_non_terminal,
            **flags,
        )

    def children(self, parent: str, codes: List[str]) -> List[SearchHit]:
        return [
            self.hit(child, is_direct_input=False, parent_code=parent)
            for child in codes
            if child != parent
        ]

    def resolve(self, raw: str, result: SearchResult):
        if is_wildcard(raw):
            matches = self.index.find_wildcard_matches(raw)
            if not matches:
                result.errors.append(f"No matching {self.label} codes for pattern: {raw}")
                return
            for code in matches:
                record = self.index.snapshot.codes[code]
                result.results.append(self.hit(code, is_parent=record.is_non_terminal))
            return

        code = normalize(raw, self.variant)
        if not is_valid_format(code, self.variant):
            result.errors.append(f"Format error: {FORMAT_HINTS[self.variant]}. Invalid: {raw}")
            return

        key = self.index.canonical_key(code)
        if key is not None:
            self.resolve_existing(key, result)
        elif self.variant == ICD:
            self.resolve_missing_icd(code, raw, result)
        else:
            self.resolve_missing_ops(code, raw, result)

    def resolve_existing(self, code: str, result: SearchResult):
        record = self.index.snapshot.codes[code]
        if self.variant == ICD:
            children = []
            if record.is_non_terminal or "." not in code:
                children = self.index.find_children(code)
            result.results.append(self.hit(code, is_parent=bool(children)))
            if children and self.show_child_codes:
                result.results.extend(self.children(code, children))
            return

        result.results.append(self.hit(code, is_parent=record.is_non_terminal))
        if self.show_child_codes and record.is_non_terminal:
            result.results.extend(self.children(code, self.index.find_children(code)))

    def resolve_missing_icd(self, code: str, raw: str, result: SearchResult):
        children = self.index.find_children(code)
        if not children:
            result.errors.append(f"{self.label} code not present in {self.year}: {raw}")
            return
        if self.show_child_codes:
            result.results.extend(self.children(code, children))
            return
        result.results.append(SearchHit(
            code=code,
            description=f"Parent code with {len(children)} sub-codes",
            is_parent=True,
            is_direct_input=False,
            virtual_parent=True,
        ))

    def resolve_missing_ops(self, code: str, raw: str, result: SearchResult):
        owner = None
        if _OPS_THREE_DIGIT_INPUT_RE.match(code):
            owner = self.index.find_three_digit_range(code)
        if owner is None:
            result.errors.append(f"{self.label} code not present in {self.year}: {raw}")
            return

        result.results.append(SearchHit(
            code=code,
            description=owner.description,
            group=owner.description,
            chapter=self.index.find_chapter(code),
            three_digit=owner.description,
            is_parent=True,
        ))
        if self.show_child_codes:
            pattern = re.compile(rf"^{re.escape(code)}\d")
            children = sorted(c for c in self.index.snapshot.codes if pattern.match(c))
            result.results.extend(self.children(code, children))


def search_codes(
    text: str,
    index: CodeIndex,
    show_child_codes: bool = False,
) -> SearchResult:
    """
    Look up every code in ``text`` against one snapshot.

    Codes that belong to the other catalog variant (leading letter vs.
    leading digit) are skipped silently.

    Args:
        text: Raw user input
        index: CodeIndex of the snapshot to search
        show_child_codes: Expand non-terminal codes into their children

    Returns:
        SearchResult with hits, the number of removed duplicates and error
        messages
    """
    codes, duplicates = parse_user_input(text)
    result = SearchResult(duplicates_removed=duplicates)
    searcher = _Searcher(index, show_child_codes)

    for raw in codes:
        if detect_code_type(raw) != index.variant:
            continue
        searcher.resolve(raw, result)

    for hit in result.results:
        hit.is_terminal = is_terminal(hit, index.variant)

    logger.info(
        f"Searched {len(codes)} {index.variant} codes: "
        f"{len(result.results)} results, {len(result.errors)} errors"
    )
    return result
