"""
Unit tests for the diff tree.

Run with: python -m pytest test_hierarchy.py
"""

import pytest
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from catalog_diff.diff import DiffEntry, diff_catalogs
from catalog_diff.hierarchy import (
    StatusCounts,
    build_hierarchy,
    chapter_key_of,
    group_key_of,
)


@pytest.fixture
def icd_tree(icd_old, icd_new, icd_migrations):
    return build_hierarchy(diff_catalogs(icd_old, icd_new, "icd", icd_migrations), "icd")


def entry(code, status="added", sub_status="new"):
    return DiffEntry(code=code, status=status, sub_status=sub_status)


class TestKeys:
    """Test cases for chapter and group key derivation"""

    def test_icd_keys(self):
        assert chapter_key_of("A00.1", "icd") == "A"
        assert group_key_of("A00.1", "icd") == "A00"

    def test_ops_keys(self):
        assert chapter_key_of("5-378.b8", "ops") == "5"
        assert group_key_of("5-378.b8", "ops") == "5-37"

    def test_ops_group_fallbacks(self):
        assert group_key_of("5.12", "ops") == "5.12"
        assert group_key_of("500", "ops") == "5-00"
        assert group_key_of("5", "ops") == "5-00"

    def test_underivable(self):
        assert chapter_key_of("-", "icd") is None
        assert group_key_of("A", "icd") is None


class TestIcdTree:

    def test_unchanged_excluded(self, icd_tree):
        total = sum(chapter.counts.total for chapter in icd_tree)
        assert total == 5

    def test_chapters_sorted_by_title(self, icd_tree):
        assert [c.title for c in icd_tree] == ["Chapter A", "Chapter B", "Chapter C"]

    def test_chapter_counts(self, icd_tree):
        counts = icd_tree[0].counts
        assert counts.added == 1
        assert counts.removed == 1
        assert counts.changed == 1
        assert counts.total == 3
        assert counts.replacement == 1
        assert counts.redirected == 1

    def test_groups(self, icd_tree):
        chapter = icd_tree[0]
        assert [g.key for g in chapter.groups] == ["A00", "A01", "A02"]
        assert chapter.group("A01").codes[0].code == "A01"
        assert chapter.group("Z99") is None

    def test_deprecated_count(self, icd_tree):
        assert icd_tree[1].counts.deprecated == 1
        assert icd_tree[2].counts.new == 1


class TestLazyExpansion:

    def test_groups_built_on_demand(self, icd_tree):
        chapter = icd_tree[0]
        assert chapter.is_expanded is False
        groups = chapter.groups
        assert chapter.is_expanded is True
        assert chapter.groups is groups

    def test_lazy_matches_eager(self, icd_old, icd_new, icd_migrations):
        entries = diff_catalogs(icd_old, icd_new, "icd", icd_migrations)
        eager = build_hierarchy(entries, "icd")
        for chapter in eager:
            _ = chapter.groups
        lazy = build_hierarchy(entries, "icd")

        for a, b in zip(eager, lazy):
            assert a.counts == b.counts
            assert [(g.key, [e.code for e in g.codes]) for g in a.groups] == \
                [(g.key, [e.code for e in g.codes]) for g in b.groups]

    def test_group_counts_sum_to_chapter(self, icd_tree):
        for chapter in icd_tree:
            assert sum(g.counts.total for g in chapter.groups) == chapter.counts.total


class TestOpsTree:

    def test_numeric_chapter_order(self):
        entries = [entry("9-100"), entry("1-202.00"), entry("5-378.b8", "changed", None)]
        tree = build_hierarchy(entries, "ops")
        assert [c.key for c in tree] == ["1", "5", "9"]

    def test_titles(self):
        tree = build_hierarchy([entry("5-378.b8"), entry("7-100")], "ops")
        assert tree[0].title == "5 - Operationen"
        assert tree[1].title == "7 - Chapter 7"

    def test_fixture_years(self, ops_old, ops_new, ops_migrations):
        tree = build_hierarchy(diff_catalogs(ops_old, ops_new, "ops", ops_migrations), "ops")
        assert [c.key for c in tree] == ["1", "5"]
        assert [g.key for g in tree[0].groups] == ["1-20"]
        assert tree[0].counts.total == 2


class TestStatusCounts:

    def test_from_entries(self):
        counts = StatusCounts.from_entries([
            entry("A01", "removed", "deprecated"),
            entry("A02", "added", "replacement"),
            entry("A03", "changed", None),
        ])
        assert counts.to_dict() == {
            "added": 1,
            "removed": 1,
            "changed": 1,
            "total": 3,
            "new": 0,
            "replacement": 1,
            "deprecated": 1,
            "redirected": 0,
        }

    def test_entries_without_chapter_skipped(self):
        tree = build_hierarchy([entry("-"), entry("A01")], "icd")
        assert len(tree) == 1

    def test_invalid_variant(self):
        with pytest.raises(ValueError):
            build_hierarchy([], "atc")
