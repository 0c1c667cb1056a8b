"""
Catalog Diff

Parses yearly snapshots of the German medical classification catalogs and
compares them code by code:
- ICD-10-GM (diagnoses, letter-prefixed codes such as A00.1)
- OPS (procedures, numeric codes such as 5-378.b8)

Data source: BfArM (Bundesinstitut für Arzneimittel und Medizinprodukte)
https://www.bfarm.de/DE/Kodiersysteme/Services/Downloads/_node.html

Changed codes are reported field by field; added and removed codes are
attributed to the published crosswalks (Umsteiger) where available.
"""

from .diff import DiffEntry, diff_catalogs
from .hierarchy import ChapterNode, GroupNode, build_hierarchy
from .index import CodeIndex
from .migration import MigrationMap, load_migration_map
from .normalize import normalize
from .parser import parse_catalog
from .records import Snapshot
from .search import search_codes
from .sources import FileCatalogSource, FileMigrationSource, SnapshotCache

__version__ = "0.1.0"

__all__ = [
    "ChapterNode",
    "CodeIndex",
    "DiffEntry",
    "FileCatalogSource",
    "FileMigrationSource",
    "GroupNode",
    "MigrationMap",
    "Snapshot",
    "SnapshotCache",
    "build_hierarchy",
    "diff_catalogs",
    "load_migration_map",
    "normalize",
    "parse_catalog",
    "search_codes",
]
