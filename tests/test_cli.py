import json
from pathlib import Path

import pytest

from gene_guidance import app
from gene_guidance.constants import DATA_DIR_ENV
from gene_guidance.tools import import_catalog


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(Path, "home", lambda: tmp_path / "home")
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "data"))
    return tmp_path


def _import(db_path: Path) -> int:
    return import_catalog.main(["--input", "tests/fixtures/catalog_sample.json", "--db", str(db_path)])


def test_import_catalog(isolated_home: Path, capsys: pytest.CaptureFixture) -> None:
    db_path = isolated_home / "store.sqlite3"
    assert _import(db_path) == 0
    out = capsys.readouterr().out
    assert "Catalog loaded into" in out
    assert "genes: 3" in out
    assert db_path.exists()


def test_import_catalog_missing_or_invalid_input(isolated_home: Path) -> None:
    assert import_catalog.main(["--input", str(isolated_home / "nope.json")]) == 2

    bad = isolated_home / "bad.json"
    bad.write_text(json.dumps({"genes": [{"id": "g1"}]}))
    assert import_catalog.main(["--input", str(bad)]) == 2


def test_generate_report_to_stdout(isolated_home: Path, capsys: pytest.CaptureFixture) -> None:
    db_path = isolated_home / "store.sqlite3"
    _import(db_path)
    capsys.readouterr()

    code = app.main(
        [
            "--db", str(db_path),
            "--age", "30",
            "--sex", "f",
            "--entry", "BRCA1", "c.68_69del",
            "--cancer-positive", "yes",
            "--cancer-linked", "yes",
            "--cancer-gene", "APC",
        ]
    )
    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["patient"] == {"age": 30, "sex": "F", "cancer_positive": True, "cancer_linked_to_gene": True}
    assert [box["gene"]["symbol"] for box in payload["boxes"]] == ["APC", "BRCA1"]
    assert payload["boxes"][0]["cancer_only"] is True
    assert [rec["id"] for rec in payload["boxes"][1]["future_recs"]] == ["grp-ovary"]
    assert (isolated_home / "data" / "logs").exists()


def test_generate_report_to_file(isolated_home: Path) -> None:
    db_path = isolated_home / "store.sqlite3"
    _import(db_path)
    output = isolated_home / "report.json"
    code = app.main(
        [
            "--db", str(db_path),
            "--age", "45",
            "--sex", "M",
            "--entry", "BRCA1", "c.181T>G",
            "--cancer-positive", "no",
            "--output", str(output),
        ]
    )
    assert code == 0
    payload = json.loads(output.read_text())
    assert [rec["id"] for rec in payload["boxes"][0]["done_recs"]] == ["grp-counsel", "grp-clinic", "grp-prostate"]


def test_generate_reports_validation_errors(isolated_home: Path, capsys: pytest.CaptureFixture) -> None:
    db_path = isolated_home / "store.sqlite3"
    _import(db_path)
    capsys.readouterr()

    code = app.main(["--db", str(db_path), "--age", "-3", "--entry", "NOPE", "c.1A>G"])
    assert code == 2
    err = capsys.readouterr().err
    assert "age: Patient age must be a non-negative whole number." in err
    assert "sex: Pick patient sex." in err
    assert "genes[0]: Invalid input" in err


def test_generate_without_store(isolated_home: Path, capsys: pytest.CaptureFixture) -> None:
    code = app.main(["--age", "30", "--sex", "F", "--cancer-positive", "no"])
    assert code == 1
    assert "Store not found" in capsys.readouterr().err


def test_import_catalog_with_dangling_reference(isolated_home: Path, capsys: pytest.CaptureFixture) -> None:
    catalog = isolated_home / "dangling.json"
    catalog.write_text(json.dumps({"groups": [{"id": "x", "gene_id": "nope", "recommendations": "r"}]}))
    code = import_catalog.main(["--input", str(catalog), "--db", str(isolated_home / "store.sqlite3")])
    assert code == 2
    assert "Catalog is not valid" in capsys.readouterr().err
