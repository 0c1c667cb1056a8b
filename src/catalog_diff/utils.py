"""
Utility functions for tabular views of diffs and snapshots.
"""

import pandas as pd
from typing import Iterable, Optional
import logging

from .diff import DiffEntry, STATUSES, SUB_STATUSES
from .records import Snapshot

logger = logging.getLogger(__name__)

DIFF_COLUMNS = [
    "code",
    "status",
    "sub_status",
    "description",
    "old_description",
    "changed_fields",
    "migration_target",
    "migration_source",
    "auto_forward",
    "auto_backward",
]


def diff_to_dataframe(
    entries: Iterable[DiffEntry],
    include_unchanged: bool = False
) -> pd.DataFrame:
    """
    Flatten diff entries into one row per code.

    Args:
        entries: Output of ``diff_catalogs``
        include_unchanged: Keep rows with status ``unchanged``

    Returns:
        DataFrame with the columns in ``DIFF_COLUMNS``
    """
    rows = []
    for entry in entries:
        if not include_unchanged and not entry.is_change:
            continue
        rows.append({
            "code": entry.code,
            "status": entry.status,
            "sub_status": entry.sub_status,
            "description": entry.description,
            "old_description": entry.old_record.description if entry.old_record else None,
            "changed_fields": ", ".join(entry.field_diffs),
            "migration_target": entry.migration_target,
            "migration_source": ", ".join(entry.migration_source),
            "auto_forward": entry.auto_forward,
            "auto_backward": entry.auto_backward,
        })
    return pd.DataFrame(rows, columns=DIFF_COLUMNS)


def summarize_diff(entries: Iterable[DiffEntry]) -> pd.DataFrame:
    """
    Count entries per status and sub-status.

    Returns:
        DataFrame with ``status``, ``sub_status`` and ``count`` columns;
        combinations that do not occur are left out
    """
    df = diff_to_dataframe(entries, include_unchanged=True)
    if df.empty:
        return pd.DataFrame(columns=["status", "sub_status", "count"])

    df["sub_status"] = df["sub_status"].fillna("-")
    summary = (
        df.groupby(["status", "sub_status"])
        .size()
        .reset_index(name="count")
    )
    order = {status: i for i, status in enumerate(STATUSES)}
    sub_order = {sub: i for i, sub in enumerate(SUB_STATUSES)}
    summary = summary.sort_values(
        by=["status", "sub_status"],
        key=lambda col: col.map(order if col.name == "status" else sub_order).fillna(len(sub_order)),
    ).reset_index(drop=True)
    return summary


def snapshot_to_dataframe(snapshot: Snapshot) -> pd.DataFrame:
    """One row per code record with every record field as a column."""
    df = pd.DataFrame([record.to_dict() for record in snapshot.codes.values()])
    logger.info(f"Converted {len(df)} {snapshot.variant} codes to DataFrame")
    return df


def enrich_dataframe(
    df: pd.DataFrame,
    code_column: str,
    index,
    description_column: str = "description",
    default: Optional[str] = "Unknown",
    inplace: bool = False
) -> pd.DataFrame:
    """
    Add description column to DataFrame based on code column.

    Args:
        df: DataFrame with code column
        code_column: Name of column containing codes
        index: CodeIndex instance
        description_column: Name for new description column
        default: Value for codes missing from the snapshot
        inplace: Modify DataFrame inplace

    Returns:
        DataFrame with added description column
    """
    if not inplace:
        df = df.copy()

    if code_column not in df.columns:
        raise ValueError(f"Column '{code_column}' not found in DataFrame")

    def describe(code):
        record = index.find_exact(code) if isinstance(code, str) else None
        return record.description if record is not None else default

    df[description_column] = df[code_column].apply(describe)

    logger.info(f"Added '{description_column}' column to DataFrame")

    return df


def export_diff_to_csv(
    entries: Iterable[DiffEntry],
    output_path: str,
    include_unchanged: bool = False,
    encoding: str = "utf-8"
) -> int:
    """
    Export a diff to CSV file.

    Args:
        entries: Output of ``diff_catalogs``
        output_path: Path for output CSV file
        include_unchanged: Also write unchanged codes
        encoding: File encoding

    Returns:
        Number of rows written
    """
    df = diff_to_dataframe(entries, include_unchanged=include_unchanged)
    df.to_csv(output_path, index=False, encoding=encoding)
    logger.info(f"Exported {len(df)} diff rows to {output_path}")
    return len(df)


def export_diff_to_parquet(
    entries: Iterable[DiffEntry],
    output_path: str,
    include_unchanged: bool = False
) -> int:
    """
    Export a diff to a Parquet file (pyarrow engine).

    Returns:
        Number of rows written
    """
    df = diff_to_dataframe(entries, include_unchanged=include_unchanged)
    df.to_parquet(output_path, index=False, engine="pyarrow")
    logger.info(f"Exported {len(df)} diff rows to {output_path}")
    return len(df)
