"""
Shared fixtures: two small ICD and OPS catalog years plus crosswalks.
"""

import pytest
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from catalog_diff.parser import parse_catalog
from catalog_diff.migration import load_migration_map


def icd_line(code, description, terminal="T", chapter="01", group=None, sex="9", min_age="9999"):
    parts = [""] * 28
    parts[0] = "4" if "." in code else "3"
    parts[1] = terminal
    parts[2] = "X"
    parts[3] = chapter
    parts[4] = group or code[:3]
    parts[5] = code
    parts[6] = code
    parts[7] = code.replace(".", "")
    parts[8] = description
    parts[12] = "P"
    parts[13] = "P"
    parts[19] = sex
    parts[20] = "9"
    parts[21] = min_age
    parts[22] = "9999"
    parts[23] = "9"
    parts[24] = "N"
    parts[25] = "J"
    parts[26] = "N"
    parts[27] = "N"
    return ";".join(parts)


def ops_line(code, description, terminal="T", side="N", three_digit=None, group=None):
    parts = [""] * 12
    parts[0] = "4" if "." in code else "3"
    parts[1] = terminal
    parts[2] = "X"
    parts[3] = code[0]
    parts[4] = group or code[:4]
    parts[5] = three_digit or code.split(".")[0]
    parts[6] = code
    parts[7] = side
    parts[8] = description
    parts[9] = "J"
    parts[10] = "N"
    parts[11] = "N"
    return ";".join(parts)


ICD_GROUPS = "\n".join([
    "A00;A09;01;Infektiöse Darmkrankheiten",
    "B10;B19;01;Sonstige Virusinfektionen",
    "B99;B99;01;Sonstige Infektionskrankheiten",
    "C00;C14;02;Bösartige Neubildungen der Lippe, der Mundhöhle und des Pharynx",
])

ICD_CHAPTERS = "\n".join([
    "01;Bestimmte infektiöse und parasitäre Krankheiten",
    "02;Neubildungen",
])

ICD_CODES_2024 = "\n".join([
    icd_line("A00", "Cholera", terminal="N"),
    icd_line("A00.0", "Cholera durch Vibrio cholerae O:1, Biovar cholerae"),
    icd_line("A00.1", "Cholera durch Vibrio cholerae O:1, Biovar eltor"),
    icd_line("A01", "Typhus abdominalis"),
    icd_line("B10", "Sonstige Herpesviren"),
    icd_line("B99", "Sonstige Infektionskrankheiten"),
])

ICD_CODES_2025 = "\n".join([
    icd_line("A00", "Cholera", terminal="N"),
    icd_line("A00.0", "Cholera durch Vibrio cholerae O:1, Biovar cholerae, klassisch"),
    icd_line("A00.1", "Cholera durch Vibrio cholerae O:1, Biovar eltor"),
    icd_line("A02", "Sonstige Salmonelleninfektionen"),
    icd_line("B10", "Sonstige Herpesviren"),
    icd_line("C00", "Bösartige Neubildung der Lippe", chapter="02"),
])

ICD_CROSSWALK = "\n".join([
    "A00.0;A00.0;A;A",
    "A01;A02;A;N",
    "B99;UNDEF;N;N",
])

OPS_GROUPS = "\n".join([
    "1;1-20;1-33;Untersuchung einzelner Körpersysteme",
    "5;5-35;5-37;Operationen an Klappen und Septen des Herzens",
])

OPS_CHAPTERS = "\n".join([
    "1;Diagnostische Maßnahmen",
    "5;Operationen",
])

OPS_THREE_DIGIT = "\n".join([
    "1;1-20;1-202;Diagnostik bei Verdacht auf Hirntod",
    "5;5-35;5-378;Entfernung, Wechsel und Korrektur eines Herzschrittmachers",
])

OPS_CODES_2024 = "\n".join([
    ops_line("1-202", "Diagnostik bei Verdacht auf Hirntod", terminal="N"),
    ops_line("1-202.00", "Bei einem potenziellen Organspender"),
    ops_line("1-202.01", "Bei einem potenziellen Gewebespender"),
    ops_line("5-378.b8", "Systemumstellung Herzschrittmacher", side="N"),
])

OPS_CODES_2025 = "\n".join([
    ops_line("1-202", "Diagnostik bei Verdacht auf Hirntod", terminal="N"),
    ops_line("1-202.00", "Bei einem potenziellen Organspender"),
    ops_line("1-202.02", "Bei einem potenziellen Gewebespender, mit Dokumentation"),
    ops_line("5-378.b8", "Systemumstellung Herzschrittmacher", side="J"),
])

OPS_CROSSWALK = "\n".join([
    "1-202.01;N;1-202.02;N;A;N",
    "1-202.00;N;1-202.00;N;A;A",
])


def icd_files(codes):
    return {"codes": codes, "groups": ICD_GROUPS, "chapters": ICD_CHAPTERS}


def ops_files(codes):
    return {
        "codes": codes,
        "groups": OPS_GROUPS,
        "chapters": OPS_CHAPTERS,
        "three_digit": OPS_THREE_DIGIT,
    }


@pytest.fixture
def icd_old():
    """ICD snapshot for 2024"""
    return parse_catalog(icd_files(ICD_CODES_2024), "icd", year="2024")


@pytest.fixture
def icd_new():
    """ICD snapshot for 2025"""
    return parse_catalog(icd_files(ICD_CODES_2025), "icd", year="2025")


@pytest.fixture
def icd_migrations():
    return load_migration_map(ICD_CROSSWALK, "icd", "2024", "2025")


@pytest.fixture
def ops_old():
    """OPS snapshot for 2024"""
    return parse_catalog(ops_files(OPS_CODES_2024), "ops", year="2024")


@pytest.fixture
def ops_new():
    """OPS snapshot for 2025"""
    return parse_catalog(ops_files(OPS_CODES_2025), "ops", year="2025")


@pytest.fixture
def ops_migrations():
    return load_migration_map(OPS_CROSSWALK, "ops", "2024", "2025")


@pytest.fixture
def data_dir(tmp_path):
    """Catalog directory laid out as in the default config"""
    files = {
        "2024/icd10/icd10gm2024syst_kodes.txt": ICD_CODES_2024,
        "2024/icd10/icd10gm2024syst_gruppen.txt": ICD_GROUPS,
        "2024/icd10/icd10gm2024syst_kapitel.txt": ICD_CHAPTERS,
        "2025/icd10/icd10gm2025syst_kodes.txt": ICD_CODES_2025,
        "2025/icd10/icd10gm2025syst_gruppen.txt": ICD_GROUPS,
        "2025/icd10/icd10gm2025syst_kapitel.txt": ICD_CHAPTERS,
        "2025/icd10/icd10gm2025syst_umsteiger_2024_2025.txt": ICD_CROSSWALK,
        "2024/ops/ops2024syst_kodes.txt": OPS_CODES_2024,
        "2024/ops/ops2024syst_gruppen.txt": OPS_GROUPS,
        "2024/ops/ops2024syst_kapitel.txt": OPS_CHAPTERS,
        "2024/ops/ops2024syst_dreisteller.txt": OPS_THREE_DIGIT,
        "2025/ops/ops2025syst_kodes.txt": OPS_CODES_2025,
        "2025/ops/ops2025syst_gruppen.txt": OPS_GROUPS,
        "2025/ops/ops2025syst_kapitel.txt": OPS_CHAPTERS,
        "2025/ops/ops2025syst_dreisteller.txt": OPS_THREE_DIGIT,
        "migrations/ops_2024_2025.txt": OPS_CROSSWALK,
    }
    for relative, content in files.items():
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return tmp_path
