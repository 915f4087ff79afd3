import json
from pathlib import Path

import pytest

from tidydesk import config
from tidydesk.exceptions import EntryNotFoundError, FileOperationError
from tidydesk.organization.backup import BackupManager


@pytest.fixture
def backups(tmp_path):
    return BackupManager(tmp_path / "backups")


def test_backup_and_list(desk, backups):
    (desk / "a.txt").write_text("aaaa")
    (desk / "sub").mkdir()
    (desk / "sub" / "b.txt").write_text("bb")

    result = backups.backup_directory(desk)
    assert result.files_count == 2
    assert result.total_size == 6

    snapshot = Path(result.backup_path)
    assert (snapshot / "sub" / "b.txt").read_text() == "bb"
    manifest = json.loads((snapshot / config.BACKUP_MANIFEST).read_text())
    assert manifest["source"] == str(desk)

    listed = backups.list_backups()
    assert [b.path for b in listed] == [result.backup_path]
    assert listed[0].file_count == 2
    assert listed[0].size == 6

def test_two_backups_same_second_do_not_collide(desk, backups):
    (desk / "a.txt").write_text("a")
    first = backups.backup_directory(desk)
    second = backups.backup_directory(desk)
    assert first.backup_path != second.backup_path
    assert len(backups.list_backups()) == 2

def test_restore_moves_existing_aside(desk, backups):
    (desk / "a.txt").write_text("original")
    result = backups.backup_directory(desk)
    (desk / "a.txt").write_text("edited")

    assert backups.restore_backup(result.backup_path) == 1
    assert (desk / "a.txt").read_text() == "original"
    assert (desk / "a_before_restore.txt").read_text() == "edited"

def test_restore_elsewhere(desk, backups, tmp_path):
    (desk / "a.txt").write_text("a")
    result = backups.backup_directory(desk)
    target = tmp_path / "elsewhere"
    backups.restore_backup(result.backup_path, target)
    assert (target / "a.txt").read_text() == "a"
    assert not (target / config.BACKUP_MANIFEST).exists()

def test_restore_without_manifest_needs_destination(backups):
    bare = backups.backup_root / "handmade"
    bare.mkdir(parents=True)
    with pytest.raises(EntryNotFoundError):
        backups.restore_backup(bare)

def test_delete_backup(desk, backups):
    (desk / "a.txt").write_text("a")
    result = backups.backup_directory(desk)
    backups.delete_backup(result.backup_path)
    assert backups.list_backups() == []

def test_delete_refuses_outside_root(desk, backups):
    backups.backup_root.mkdir(parents=True)
    with pytest.raises(FileOperationError):
        backups.delete_backup(desk)
    with pytest.raises(FileOperationError):
        backups.delete_backup(backups.backup_root)
    assert desk.exists()
