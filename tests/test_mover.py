import errno
import os

import pytest

from tidydesk.exceptions import (
    AlreadyExistsError, CannotUndoError, EntryNotFoundError, FileOperationError,
)
from tidydesk.organization import mover
from tidydesk.organization.executor import FileOperations, OverwriteStrategy
from tidydesk.organization.mover import TrashBin, move_path, numbered_path, unique_path


def _cross_device(*args, **kwargs):
    raise OSError(errno.EXDEV, "Invalid cross-device link")


def test_unique_path(tmp_path):
    f = tmp_path / "photo.jpg"
    assert unique_path(f) == f
    f.write_text("1")
    (tmp_path / "photo_1.jpg").write_text("2")
    assert unique_path(f) == tmp_path / "photo_2.jpg"

def test_numbered_path(tmp_path):
    f = tmp_path / "notes"
    f.write_text("1")
    assert numbered_path(f) == tmp_path / "notes (1)"

def test_move_same_device(tmp_path):
    src = tmp_path / "a.txt"
    src.write_text("data")
    move_path(src, tmp_path / "b.txt")
    assert not src.exists()
    assert (tmp_path / "b.txt").read_text() == "data"

def test_cross_device_fallback(tmp_path, monkeypatch):
    src = tmp_path / "a.txt"
    src.write_text("data")
    dest = tmp_path / "other" / "a.txt"
    dest.parent.mkdir()
    monkeypatch.setattr(mover.os, "rename", _cross_device)

    move_path(src, dest)
    assert not src.exists()
    assert dest.read_text() == "data"

def test_cross_device_fallback_tree(tmp_path, monkeypatch):
    src = tmp_path / "folder"
    (src / "inner").mkdir(parents=True)
    (src / "inner" / "x.txt").write_text("x")
    monkeypatch.setattr(mover.os, "rename", _cross_device)

    move_path(src, tmp_path / "moved")
    assert not src.exists()
    assert (tmp_path / "moved" / "inner" / "x.txt").read_text() == "x"

def test_failed_copy_leaves_original(tmp_path, monkeypatch):
    src = tmp_path / "a.txt"
    src.write_text("data")
    dest = tmp_path / "b.txt"

    def broken_copy(s, d, *args, **kwargs):
        with open(d, "w") as f:
            f.write("partial")
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr(mover.os, "rename", _cross_device)
    monkeypatch.setattr(mover.shutil, "copy2", broken_copy)

    with pytest.raises(FileOperationError):
        move_path(src, dest)
    assert src.read_text() == "data"
    assert not dest.exists()

def test_move_missing_source(tmp_path):
    with pytest.raises(FileOperationError):
        move_path(tmp_path / "nope", tmp_path / "dest")


# --- FileOperations ---

def test_move_strategies(desk, ledger):
    ops = FileOperations(ledger)
    target = desk / "Target"
    target.mkdir()
    (target / "a.txt").write_text("old")

    (desk / "a.txt").write_text("one")
    assert ops.move(desk / "a.txt", target, OverwriteStrategy.SKIP) == target / "a.txt"
    assert (desk / "a.txt").exists()

    assert ops.move(desk / "a.txt", target) == target / "a_1.txt"

    (desk / "a.txt").write_text("two")
    ops.move(desk / "a.txt", target / "a.txt", "overwrite")
    assert (target / "a.txt").read_text() == "two"

    ops_types = [e.operation_type for e in ledger.list()]
    assert ops_types == ["move", "move"]

@pytest.mark.parametrize("strategy", list(OverwriteStrategy))
def test_move_or_copy_onto_itself_is_a_no_op(desk, ledger, strategy):
    f = desk / "a.txt"
    f.write_text("keep me")
    ops = FileOperations(ledger)

    assert ops.move(f, desk, strategy) == f
    assert ops.move(f, f, strategy) == f
    assert ops.copy(f, f, strategy) == f
    assert f.read_text() == "keep me"
    assert sorted(p.name for p in desk.iterdir()) == ["a.txt"]
    assert ledger.list() == []

def test_move_onto_hard_link_keeps_data(desk, ledger):
    (desk / "a.txt").write_text("linked")
    os.link(desk / "a.txt", desk / "b.txt")
    FileOperations(ledger).move(desk / "a.txt", desk / "b.txt", "overwrite")
    assert (desk / "a.txt").read_text() == "linked"
    assert (desk / "b.txt").read_text() == "linked"

def test_move_missing(desk, ledger):
    with pytest.raises(EntryNotFoundError):
        FileOperations(ledger).move(desk / "ghost.txt", desk / "x.txt")

def test_copy_creates_parents(desk, ledger):
    (desk / "a.txt").write_text("a")
    dest = FileOperations(ledger).copy(desk / "a.txt", desk / "deep" / "er" / "a.txt")
    assert dest.read_text() == "a"
    assert (desk / "a.txt").exists()

def test_rename(desk, ledger):
    ops = FileOperations(ledger)
    (desk / "a.txt").write_text("a")
    (desk / "b.txt").write_text("b")

    with pytest.raises(AlreadyExistsError):
        ops.rename(desk / "a.txt", "b.txt")
    with pytest.raises(FileOperationError):
        ops.rename(desk / "a.txt", "sub/c.txt")

    assert ops.rename(desk / "a.txt", "c.txt") == desk / "c.txt"
    assert ops.rename(desk / "c.txt", "c.txt") == desk / "c.txt"
    assert len(ledger.list()) == 1

def test_delete_permanent(desk, ledger, trash):
    (desk / "a.txt").write_text("a")
    FileOperations(ledger).delete(desk / "a.txt", to_trash=False)
    assert not (desk / "a.txt").exists()
    assert trash.sent == []

def test_create_folder(desk, ledger):
    ops = FileOperations(ledger)
    assert ops.create_folder(desk / "new" / "nested").is_dir()
    with pytest.raises(AlreadyExistsError):
        ops.create_folder(desk / "new")
    # Folder creation is not undoable
    assert ledger.list() == []


# --- Trash ---

def test_trash_restore_roundtrip(desk, trash):
    f = desk / "keep.txt"
    f.write_text("precious")
    trash.send(f)
    assert not f.exists()

    assert trash.restore(f) == f
    assert f.read_text() == "precious"
    assert list((trash.root / "info").iterdir()) == []

def test_trash_restore_picks_newest(desk, trash):
    f = desk / "x.txt"
    f.write_text("first")
    trash.send(f)
    f.write_text("second")
    trash.send(f)

    # Backdate the first record
    for info in (trash.root / "info").iterdir():
        if info.name == "x.txt.trashinfo":
            text = info.read_text().splitlines()
            info.write_text("\n".join(text[:2] + ["DeletionDate=2000-01-01T00:00:00"]) + "\n")

    trash.restore(f)
    assert f.read_text() == "second"

def test_trash_restore_errors(desk, trash):
    f = desk / "x.txt"
    with pytest.raises(CannotUndoError):
        trash.restore(f)

    f.write_text("x")
    trash.send(f)
    f.write_text("occupied")
    with pytest.raises(AlreadyExistsError):
        trash.restore(f)

def test_trash_send_missing(desk):
    with pytest.raises(EntryNotFoundError):
        TrashBin().send(desk / "ghost.txt")

def test_trash_send_calls_send2trash(desk, monkeypatch):
    called = []
    monkeypatch.setattr(mover, "send2trash", lambda p: called.append(p))
    f = desk / "x.txt"
    f.write_text("x")
    TrashBin().send(f)
    assert called == [str(f)]

def test_restore_unsupported_platform(desk, monkeypatch):
    monkeypatch.setattr(mover.sys, "platform", "darwin")
    with pytest.raises(CannotUndoError):
        TrashBin().restore(desk / "x.txt")
