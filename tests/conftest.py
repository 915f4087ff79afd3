import os
import pytest
import sqlite3
from datetime import datetime
from pathlib import Path
from urllib.parse import quote

from tidydesk.core import TidyDeskApp
from tidydesk.database.db import DBManager
from tidydesk.database.schema import init_schema
from tidydesk.database.ops import DBOperations
from tidydesk.history import HistoryLedger
from tidydesk.organization.mover import TrashBin, move_path, unique_path


class FakeTrash(TrashBin):
    """
    Trash rooted in a temp directory. Sending writes the freedesktop
    files/ + info/ layout, so restore() runs the real lookup.
    """

    def __init__(self, root: Path):
        super().__init__(trash_dirs=[root])
        self.root = root
        self.sent = []

    def send(self, path):
        path = Path(os.path.abspath(path))
        files = self.root / "files"
        info = self.root / "info"
        files.mkdir(parents=True, exist_ok=True)
        info.mkdir(parents=True, exist_ok=True)

        trashed = unique_path(files / path.name)
        move_path(path, trashed)
        stamp = datetime.now().strftime("%Y-%m-%dT%H:%M:%S")
        (info / f"{trashed.name}.trashinfo").write_text(
            f"[Trash Info]\nPath={quote(str(path))}\nDeletionDate={stamp}\n", encoding="utf-8"
        )
        self.sent.append(str(path))


@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()

@pytest.fixture
def db_ops(conn):
    """Returns a DBOperations instance attached to the in-memory DB."""
    return DBOperations(conn)

@pytest.fixture
def db_manager(tmp_path):
    """File-backed manager; each `with` opens a fresh connection."""
    return DBManager(tmp_path / "data" / "test.db")

@pytest.fixture
def trash(tmp_path):
    return FakeTrash(tmp_path / "Trash")

@pytest.fixture
def ledger(db_manager, trash):
    return HistoryLedger(db_manager, trash)

@pytest.fixture
def app(tmp_path, trash):
    return TidyDeskApp(tmp_path / "data" / "tidydesk.db", trash=trash)

@pytest.fixture
def desk(tmp_path):
    """Empty folder to organize, kept apart from the trash and the database."""
    d = tmp_path / "Desktop"
    d.mkdir()
    return d
