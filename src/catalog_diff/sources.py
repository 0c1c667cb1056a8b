# src/catalog_diff/sources.py
from __future__ import annotations

import re
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import get_catalog_config, load_config
from .fields import CHAPTERS, CODES, GROUPS, THREE_DIGIT
from .migration import looks_like_html
from .normalize import OPS, check_variant
from .parser import parse_catalog
from .records import Snapshot

logger = logging.getLogger(__name__)

_YEAR_DIR_RE = re.compile(r"^\d{4}$")


class CatalogNotFoundError(FileNotFoundError):
    """A required catalog file for (variant, year) does not exist."""

    def __init__(self, variant: str, year: str, path: Optional[Path]):
        self.variant = variant
        self.year = year
        self.path = path
        if path is None:
            message = f"No {variant} {year} catalog file: 'catalogs.{variant}.codes' is not configured"
        else:
            message = f"No {variant} {year} catalog file at {path}"
        super().__init__(message)


class CatalogDataSource(ABC):
    """
    Supplies the raw text of one catalog year.

    Implementations only read; parsing is done by ``parse_catalog``.
    """

    @abstractmethod
    def load_raw(self, variant: str, year: str) -> Dict[str, Optional[str]]:
        """
        Parameters
        ----------
        variant : str
            ``"icd"`` or ``"ops"``
        year : str
            Four-digit catalog year

        Returns
        -------
        Dict[str, Optional[str]]
            Raw file content keyed by file kind (``codes``, ``groups``,
            ``chapters`` and, for OPS, ``three_digit``)
        """
        raise NotImplementedError

    @abstractmethod
    def available_years(self, variant: str) -> List[str]:
        raise NotImplementedError

    def load_snapshot(self, variant: str, year: str) -> Snapshot:
        return parse_catalog(self.load_raw(variant, year), variant, year=year)


class MigrationDataSource(ABC):
    """
    Supplies crosswalk text for (old_year, new_year, variant).

    ``None`` is a legitimate answer: not every year pair has a crosswalk.
    """

    @abstractmethod
    def load_raw(self, variant: str, old_year: str, new_year: str) -> Optional[str]:
        raise NotImplementedError


def _read_text(path: Path, encoding: str) -> str:
    with open(path, "r", encoding=encoding, errors="replace") as f:
        return f.read()


class FileCatalogSource(CatalogDataSource):
    """
    Reads catalog files from a directory tree laid out as in the config.

    Usage:
        source = FileCatalogSource("data")
        raw = source.load_raw("icd", "2025")
        years = source.available_years("icd")
    """

    def __init__(self, base_dir: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
        self.config = config if config is not None else load_config()
        self.base_dir = Path(base_dir if base_dir is not None else self.config.get("base_dir", "."))
        self.encoding = self.config.get("encoding", "utf-8")

    def path_for(self, variant: str, year: str, kind: str) -> Optional[Path]:
        pattern = get_catalog_config(self.config, variant).get(kind)
        if not pattern:
            return None
        return self.base_dir / pattern.format(year=year)

    def load_raw(self, variant: str, year: str) -> Dict[str, Optional[str]]:
        variant = check_variant(variant)
        kinds = [CODES, GROUPS, CHAPTERS] + ([THREE_DIGIT] if variant == OPS else [])

        raw: Dict[str, Optional[str]] = {}
        for kind in kinds:
            path = self.path_for(variant, year, kind)
            if path is None or not path.exists():
                if kind == CODES:
                    raise CatalogNotFoundError(variant, year, path)
                logger.warning(f"Missing {variant} {year} {kind} file: {path}")
                raw[kind] = None
                continue
            raw[kind] = _read_text(path, self.encoding)
            logger.debug(f"Read {path}")
        return raw

    def available_years(self, variant: str) -> List[str]:
        """Four-digit year directories that hold a codes file for the variant."""
        variant = check_variant(variant)
        if not self.base_dir.is_dir():
            return []
        years = []
        for entry in self.base_dir.iterdir():
            if entry.is_dir() and _YEAR_DIR_RE.match(entry.name):
                path = self.path_for(variant, entry.name, CODES)
                if path is not None and path.exists():
                    years.append(entry.name)
        return sorted(years)

    def __repr__(self) -> str:
        return f"FileCatalogSource(base_dir='{self.base_dir}')"


class FileMigrationSource(MigrationDataSource):
    """
    Locates crosswalk files by trying the configured naming patterns in order.

    Different publication years used different file names, so the first
    pattern that resolves to an existing file wins.
    """

    def __init__(self, base_dir: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
        self.config = config if config is not None else load_config()
        self.base_dir = Path(base_dir if base_dir is not None else self.config.get("base_dir", "."))
        self.encoding = self.config.get("encoding", "utf-8")

    def candidates(self, variant: str, old_year: str, new_year: str) -> List[Path]:
        patterns = get_catalog_config(self.config, variant).get("migrations") or []
        return [
            self.base_dir / pattern.format(old_year=old_year, new_year=new_year)
            for pattern in patterns
        ]

    def load_raw(self, variant: str, old_year: str, new_year: str) -> Optional[str]:
        variant = check_variant(variant)
        for path in self.candidates(variant, old_year, new_year):
            if not path.exists():
                continue
            text = _read_text(path, self.encoding)
            if looks_like_html(text):
                logger.warning(f"Crosswalk file {path} is an HTML page, skipping")
                continue
            logger.info(f"Using {variant} crosswalk {path}")
            return text
        logger.warning(f"No {variant} crosswalk found for {old_year}->{new_year}")
        return None


class SnapshotCache:
    """
    Explicit cache of parsed snapshots keyed by (variant, year).

    Usage:
        cache = SnapshotCache()
        snapshot = cache.get_or_load("icd", "2025", source.load_snapshot)
        cache.invalidate(variant="icd")
    """

    def __init__(self):
        self._snapshots: Dict[Tuple[str, str], Snapshot] = {}

    def get_or_load(
        self,
        variant: str,
        year: str,
        loader: Callable[[str, str], Snapshot],
    ) -> Snapshot:
        key = (check_variant(variant), str(year))
        if key not in self._snapshots:
            logger.debug(f"Cache miss for {key}")
            self._snapshots[key] = loader(*key)
        return self._snapshots[key]

    def put(self, snapshot: Snapshot, year: Optional[str] = None):
        year = year if year is not None else snapshot.year
        if year is None:
            raise ValueError("Snapshot has no year; pass one explicitly")
        self._snapshots[(snapshot.variant, str(year))] = snapshot

    def has(self, variant: str, year: str) -> bool:
        return (check_variant(variant), str(year)) in self._snapshots

    def invalidate(self, variant: Optional[str] = None, year: Optional[str] = None) -> int:
        """
        Drop cached snapshots matching the given variant and/or year.

        Without arguments the whole cache is cleared. Returns the number of
        dropped entries.
        """
        variant = check_variant(variant) if variant is not None else None
        year = str(year) if year is not None else None
        doomed = [
            key for key in self._snapshots
            if (variant is None or key[0] == variant) and (year is None or key[1] == year)
        ]
        for key in doomed:
            del self._snapshots[key]
        if doomed:
            logger.info(f"Invalidated {len(doomed)} cached snapshots")
        return len(doomed)

    def __len__(self) -> int:
        return len(self._snapshots)

    def __repr__(self) -> str:
        keys = ", ".join(f"{v}:{y}" for v, y in sorted(self._snapshots))
        return f"SnapshotCache({keys})"
