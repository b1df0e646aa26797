# Shared pytest fixtures
from __future__ import annotations
import tempfile
from pathlib import Path
import pytest

from gig_importer.db.memory_store import InMemoryStore
from gig_importer.logging.init import reset_logging

USER = "user-1"
OTHER_USER = "user-2"

SAMPLE_CSV = """Date,Payer,Title,Gross,Tips,Fees,Payment Method,Paid,City,State,Notes
2026-01-15,Blue Note,,850,40,,Zelle,yes,New York,NY,
2026-01-15,Blue Note,,300,,,Zelle,yes,New York,NY,merch
01/22/2026,The Jazz Standard,Quartet,"1,200.00",,35.50,check,no,New York,new york,
"""


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return f"""input_file: ./data/gigs.csv
user_id: {USER}
options:
  skip_duplicates: true
  combine_rows: false
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def sample_csv(temp_workdir: Path) -> Path:
    f = temp_workdir / "data" / "gigs.csv"
    f.write_text(SAMPLE_CSV, encoding="utf-8")
    return f


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def clean_logging():
    # ハンドラが capsys の stdout を掴むよう毎回作り直す
    reset_logging()
    yield
    reset_logging()
