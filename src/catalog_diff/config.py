"""
Configuration loader for catalog data sources.

Handles loading file naming patterns from YAML files.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from .normalize import check_variant

logger = logging.getLogger(__name__)


# Default configuration template
DEFAULT_CONFIG = """
# Catalog Diff Configuration
#
# File name patterns per catalog variant. {year}, {old_year} and {new_year}
# are filled in at load time; paths are relative to base_dir.

base_dir: "data"
encoding: "utf-8"

catalogs:
  icd:
    codes: "{year}/icd10/icd10gm{year}syst_kodes.txt"
    groups: "{year}/icd10/icd10gm{year}syst_gruppen.txt"
    chapters: "{year}/icd10/icd10gm{year}syst_kapitel.txt"
    # Tried in order, first existing file wins
    migrations:
      - "{new_year}/icd10/icd10gm{new_year}syst_umsteiger_{old_year}_{new_year}.txt"
      - "{new_year}/icd10/umsteiger_icd10gmsyst{old_year}_icd10gmsyst{new_year}.txt"
      - "migrations/icd_{old_year}_{new_year}.txt"

  ops:
    codes: "{year}/ops/ops{year}syst_kodes.txt"
    groups: "{year}/ops/ops{year}syst_gruppen.txt"
    chapters: "{year}/ops/ops{year}syst_kapitel.txt"
    three_digit: "{year}/ops/ops{year}syst_dreisteller.txt"
    migrations:
      - "{new_year}/ops/ops{new_year}syst_umsteiger_{old_year}_{new_year}.txt"
      - "{new_year}/ops/umsteiger_opssyst{old_year}_opssyst{new_year}.txt"
      - "migrations/ops_{old_year}_{new_year}.txt"
"""


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML config file; None returns the defaults

    Returns:
        Configuration dictionary
    """
    if config_path is None:
        return yaml.safe_load(DEFAULT_CONFIG)

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}

    logger.info(f"Loaded configuration from {config_path}")
    return config


def get_catalog_config(
    config: Dict[str, Any],
    variant: str
) -> Dict[str, Any]:
    """
    Get file patterns for a catalog variant.

    Falls back to the default section when the config has none.

    Args:
        config: Full configuration dictionary
        variant: ``"icd"`` or ``"ops"``

    Returns:
        Catalog configuration for the variant
    """
    variant = check_variant(variant)
    catalogs = config.get("catalogs") or {}
    section = catalogs.get(variant)
    if section is None:
        logger.debug(f"No '{variant}' section in config, using defaults")
        section = yaml.safe_load(DEFAULT_CONFIG)["catalogs"][variant]
    return section


def create_default_config(output_path: str) -> bool:
    """
    Create a default configuration file.

    Args:
        output_path: Path where to save the config file

    Returns:
        False if a file already existed at ``output_path``
    """
    output_path = Path(output_path)

    if output_path.exists():
        logger.warning(f"Config file already exists: {output_path}")
        return False

    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(DEFAULT_CONFIG)

    logger.info(f"Created default config at {output_path}")
    return True
