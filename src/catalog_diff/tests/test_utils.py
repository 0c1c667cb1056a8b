"""
Unit tests for the pandas helpers.

Run with: python -m pytest test_utils.py
"""

import pytest
import pandas as pd
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from catalog_diff.diff import diff_catalogs
from catalog_diff.index import CodeIndex
from catalog_diff.utils import (
    DIFF_COLUMNS,
    diff_to_dataframe,
    enrich_dataframe,
    export_diff_to_csv,
    export_diff_to_parquet,
    snapshot_to_dataframe,
    summarize_diff,
)


@pytest.fixture
def icd_entries(icd_old, icd_new, icd_migrations):
    return diff_catalogs(icd_old, icd_new, "icd", icd_migrations)


class TestDiffFrames:
    """Test cases for diff DataFrames"""

    def test_changes_only(self, icd_entries):
        df = diff_to_dataframe(icd_entries)
        assert list(df.columns) == DIFF_COLUMNS
        assert len(df) == 5
        assert "unchanged" not in set(df["status"])

    def test_include_unchanged(self, icd_entries):
        df = diff_to_dataframe(icd_entries, include_unchanged=True)
        assert len(df) == 8

    def test_row_content(self, icd_entries):
        df = diff_to_dataframe(icd_entries).set_index("code")
        assert df.loc["A00.0", "changed_fields"] == "description"
        assert df.loc["A01", "migration_target"] == "A02"
        assert df.loc["A02", "migration_source"] == "A01"
        assert df.loc["B99", "description"] == "Sonstige Infektionskrankheiten"

    def test_empty(self):
        df = diff_to_dataframe([])
        assert df.empty
        assert list(df.columns) == DIFF_COLUMNS

    def test_summary(self, icd_entries):
        summary = summarize_diff(icd_entries)
        counts = {
            (status, sub_status): count
            for status, sub_status, count in zip(
                summary["status"], summary["sub_status"], summary["count"]
            )
        }
        assert counts[("added", "new")] == 1
        assert counts[("added", "replacement")] == 1
        assert counts[("removed", "deprecated")] == 1
        assert counts[("removed", "redirected")] == 1
        assert counts[("changed", "-")] == 1
        assert counts[("unchanged", "-")] == 3
        assert summary["status"].iloc[0] == "added"

    def test_summary_empty(self):
        assert summarize_diff([]).empty

    def test_export(self, icd_entries, tmp_path):
        path = tmp_path / "diff.csv"
        rows = export_diff_to_csv(icd_entries, str(path))
        assert rows == 5
        df = pd.read_csv(path)
        assert set(df["code"]) == {"A00.0", "A01", "A02", "B99", "C00"}

    def test_export_parquet(self, icd_entries, tmp_path):
        path = tmp_path / "diff.parquet"
        rows = export_diff_to_parquet(icd_entries, str(path), include_unchanged=True)
        assert rows == 8
        df = pd.read_parquet(path)
        assert df.set_index("code").loc["A01", "migration_target"] == "A02"


class TestSnapshotFrames:

    def test_snapshot_to_dataframe(self, icd_old):
        df = snapshot_to_dataframe(icd_old)
        assert len(df) == 6
        assert {"code", "description", "usage_295", "min_age"} <= set(df.columns)

    def test_enrich_dataframe(self, icd_old):
        df = pd.DataFrame({
            'patient_id': [1, 2, 3],
            'diagnosis_code': ['a000', 'A01', 'INVALID']
        })

        enriched = enrich_dataframe(df, code_column='diagnosis_code', index=CodeIndex(icd_old))

        assert 'description' in enriched.columns
        assert 'description' not in df.columns
        assert enriched['description'].iloc[1] == 'Typhus abdominalis'
        assert enriched['description'].iloc[2] == 'Unknown'

    def test_enrich_missing_column(self, icd_old):
        with pytest.raises(ValueError):
            enrich_dataframe(pd.DataFrame({'x': []}), 'code', CodeIndex(icd_old))

