"""
Unit tests for CodeIndex.

Run with: python -m pytest test_index.py
"""

import pytest
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from catalog_diff.index import CodeIndex, ops_group_base, wildcard_to_regex
from catalog_diff.parser import parse_catalog
from catalog_diff.records import CodeRecord, Snapshot


def make_snapshot(codes, variant="icd", **records):
    return Snapshot(
        variant=variant,
        codes={code: CodeRecord(code=code, description=f"Code {code}") for code in codes},
        chapters=records.get("chapters", {}),
        groups=records.get("groups", {}),
    )


@pytest.fixture
def icd_index(icd_old):
    return CodeIndex(icd_old)


@pytest.fixture
def ops_index(ops_old):
    return CodeIndex(ops_old)


class TestExactLookup:
    """Test cases for exact lookup"""

    def test_case_insensitive(self, icd_index):
        assert icd_index.find_exact("a001") is icd_index.find_exact("A00.1")
        assert icd_index.find_exact("a001").code == "A00.1"

    def test_every_key_reachable(self, icd_old, ops_old):
        for snapshot in (icd_old, ops_old):
            index = CodeIndex(snapshot)
            for code in snapshot.codes:
                assert index.find_exact(code).code == code
                assert index.find_exact(code.lower()).code == code

    def test_ops_compact_input(self, ops_index):
        assert ops_index.find_exact("5378b8").code == "5-378.b8"
        assert ops_index.find_exact("1-202.00").code == "1-202.00"

    def test_missing(self, icd_index):
        assert icd_index.find_exact("Z99.9") is None
        assert icd_index.find_exact(None) is None

    def test_contains(self, icd_index):
        assert "a00.0" in icd_index
        assert "Z99" not in icd_index

    def test_lookups_leave_index_unchanged(self, icd_index):
        before = dict(vars(icd_index))
        icd_index.find_exact("A00.0")
        icd_index.find_exact("Z99")
        assert "Z99" not in icd_index
        assert vars(icd_index) == before


class TestChildren:

    def test_icd_children(self, icd_index):
        assert icd_index.find_children("A00") == ["A00.0", "A00.1"]

    def test_icd_children_exclude_parent(self):
        index = CodeIndex(make_snapshot(["L40", "L40.7", "L40.70", "L40.71", "L41"]))
        assert index.find_children("L40.7") == ["L40.70", "L40.71"]
        assert index.find_children("L407") == ["L40.70", "L40.71"]

    def test_icd_terminal_has_no_children(self, icd_index):
        assert icd_index.find_children("A01") == []

    def test_ops_children_include_non_terminal_parent(self, ops_index):
        assert ops_index.find_children("1-202") == ["1-202", "1-202.00", "1-202.01"]

    def test_ops_terminal_parent_excluded(self, ops_index):
        assert ops_index.find_children("1-202.00") == []

    def test_ops_children_by_letter_and_digit(self):
        index = CodeIndex(make_snapshot(["1-20", "1-20a", "1-202", "1-20.0", "1-21"], variant="ops"))
        assert index.find_children("1-20") == ["1-20.0", "1-202", "1-20a"]


class TestWildcards:

    def test_prefix_pattern(self):
        index = CodeIndex(make_snapshot(["A00", "A01", "B10"]))
        assert index.find_wildcard_matches("A0*") == ["A00", "A01"]

    def test_percent_and_case(self):
        index = CodeIndex(make_snapshot(["A00", "A01", "B10"]))
        assert index.find_wildcard_matches("a%1") == ["A01"]

    def test_anchored(self):
        index = CodeIndex(make_snapshot(["A00", "A01", "B10"]))
        assert index.find_wildcard_matches("0*") == []

    def test_literal_dot(self):
        regex = wildcard_to_regex("5-378.*")
        assert regex.fullmatch("5-378.b8")
        assert not regex.fullmatch("5-378xb8")


class TestRanges:

    def test_icd_group(self, icd_index):
        assert icd_index.find_group("A00.1") == "Infektiöse Darmkrankheiten"
        assert icd_index.find_group("B99") == "Sonstige Infektionskrankheiten"

    def test_icd_chapter_from_record(self, icd_index):
        assert icd_index.find_chapter("A00.1") == "Bestimmte infektiöse und parasitäre Krankheiten"

    def test_icd_unknown_code(self, icd_index):
        assert icd_index.find_chapter("Z99") is None

    def test_ops_group(self, ops_index):
        assert ops_index.find_group("1-202.00") == "Untersuchung einzelner Körpersysteme"
        assert ops_index.find_group("5-378.b8") == "Operationen an Klappen und Septen des Herzens"

    def test_ops_chapter_from_leading_digit(self, ops_index):
        assert ops_index.find_chapter("5-378.b8") == "Operationen"
        assert ops_index.find_chapter("1-999") == "Diagnostische Maßnahmen"

    def test_ops_group_base(self):
        assert ops_group_base("1-202.00") == "1-20"
        assert ops_group_base("xyz") is None

    def test_three_digit_exact(self, ops_index):
        record = ops_index.find_three_digit_range("1-202.00")
        assert record.code == "1-202"

    def test_three_digit_by_range(self, ops_index):
        record = ops_index.find_three_digit_range("1-204.2")
        assert record.code == "1-202"

    def test_three_digit_icd(self, icd_index):
        assert icd_index.find_three_digit_range("A00.1") is None



class TestSharedGroupRanges:
    """Groups with the same range in different chapters"""

    @pytest.fixture
    def shared_index(self):
        snapshot = parse_catalog({
            "codes": "\n".join([
                "3;T;X;01;A05;A05;A05;A05;Code in chapter one",
                "4;T;X;02;A05;A05.1;A05.1;A051;Code in chapter two",
            ]),
            "groups": "\n".join([
                "A00;A09;01;Chapter one group",
                "A00;A09;02;Chapter two group",
            ]),
            "chapters": "01;Chapter one\n02;Chapter two",
        }, "icd")
        return CodeIndex(snapshot)

    def test_both_groups_kept(self, shared_index):
        groups = shared_index.snapshot.groups
        assert len(groups) == 2
        assert groups["01:A00..A09"].description == "Chapter one group"
        assert groups["02:A00..A09"].description == "Chapter two group"

    def test_group_from_own_chapter(self, shared_index):
        assert shared_index.find_group("A05") == "Chapter one group"
        assert shared_index.find_group("A05.1") == "Chapter two group"
        assert shared_index.find_chapter("A05.1") == "Chapter two"


class TestIndexMisc:

    def test_len_and_repr(self, icd_index):
        assert len(icd_index) == 6
        assert "icd" in repr(icd_index)
