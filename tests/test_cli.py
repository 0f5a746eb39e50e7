"""
End-to-end tests of the pdf-highlights command line interface.
"""

import sys
from pathlib import Path

import fitz
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pdf_highlights.core.models import Highlight, HighlightKind, Rect, Size, SyncAction
from pdf_highlights.main import main
from pdf_highlights.storage import HighlightRepository, LocalStore, SyncQueue


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    for name in ("PDF_HIGHLIGHTS_DB_PATH", "PDF_HIGHLIGHTS_API_BASE_URL", "PDF_HIGHLIGHTS_AUTH_TOKEN"):
        monkeypatch.delenv(name, raising=False)

    pdf_path = tmp_path / "paper.pdf"
    doc = fitz.open()
    doc.new_page(width=612, height=792)
    doc.new_page(width=612, height=792)
    doc.save(pdf_path)
    doc.close()

    db_path = tmp_path / "highlights.db"
    repo = HighlightRepository(LocalStore(str(db_path)))
    repo.add(Highlight.create("paper", 1, HighlightKind.TEXT, [Rect(72, 100, 200, 14)],
                              "yellow", Size(612, 792), "Important sentence"))
    repo.add(Highlight.create("paper", 2, HighlightKind.AREA, [Rect(100, 100, 80, 80)],
                              "pink", Size(612, 792)))
    return tmp_path, pdf_path, str(db_path)


def test_export_then_import_into_new_database(workspace, capsys):
    tmp_path, pdf_path, db = workspace
    output = tmp_path / "paper_highlighted.pdf"

    assert main(["--db", db, "export", str(pdf_path)]) == 0
    assert output.exists()

    other_db = str(tmp_path / "other.db")
    assert main(["--db", other_db, "import", str(output)]) == 0
    out = capsys.readouterr().out
    assert "Imported 2 highlights" in out

    # import derives the owner from the file name
    imported = HighlightRepository(LocalStore(other_db)).list_by_owner("paper_highlighted")
    assert sorted(h.kind.value for h in imported) == ["area", "text"]


def test_list_prints_highlights(workspace, capsys):
    _, _, db = workspace
    assert main(["--db", db, "list", "--owner", "paper"]) == 0
    out = capsys.readouterr().out
    assert "2 highlights for 'paper'" in out
    assert "Important sentence" in out

    assert main(["--db", db, "list", "--owner", "paper", "--page", "2"]) == 0
    assert "1 highlights" in capsys.readouterr().out


def test_dump_and_load(workspace, capsys):
    tmp_path, _, db = workspace
    dump = tmp_path / "dump.json"
    assert main(["--db", db, "dump", "--owner", "paper", "--output", str(dump)]) == 0

    other_db = str(tmp_path / "other.db")
    assert main(["--db", other_db, "load", str(dump), "--owner", "copy"]) == 0
    assert "Loaded 2 highlights" in capsys.readouterr().out
    assert len(HighlightRepository(LocalStore(other_db)).list_by_owner("copy")) == 2


def test_cleanup(workspace, capsys):
    _, _, db = workspace
    assert main(["--db", db, "cleanup", "--owner", "paper"]) == 0
    assert "Removed 0 duplicate" in capsys.readouterr().out


def test_pending_and_clear_queue(workspace, capsys):
    _, _, db = workspace
    queue = SyncQueue(LocalStore(db))
    queue.enqueue(SyncAction.DELETE, target_id="srv-1", last_error="HTTP 503")

    assert main(["--db", db, "pending"]) == 0
    out = capsys.readouterr().out
    assert "1 pending" in out
    assert "HTTP 503" in out

    assert main(["--db", db, "clear-queue"]) == 0
    assert queue.pending_count() == 0


def test_sync_requires_remote(workspace, capsys):
    _, _, db = workspace
    assert main(["--db", db, "sync"]) == 1
    assert "no remote annotation service" in capsys.readouterr().out


def test_missing_pdf_is_reported(workspace, capsys):
    tmp_path, _, db = workspace
    assert main(["--db", db, "export", str(tmp_path / "missing.pdf")]) == 1
    assert "does not exist" in capsys.readouterr().out


def test_invalid_configuration_is_reported(workspace, monkeypatch, capsys):
    _, _, db = workspace
    monkeypatch.setenv("PDF_HIGHLIGHTS_REQUEST_TIMEOUT", "-1")
    assert main(["--db", db, "pending"]) == 1
    assert "invalid configuration" in capsys.readouterr().out
