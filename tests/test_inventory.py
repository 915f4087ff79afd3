import pytest

from tidydesk.exceptions import EntryNotFoundError, NotADirError
from tidydesk.models import FileCategory
from tidydesk.scanning.filesystem import FileInventory, build_record, iter_entries, list_directory


def test_list_sorted_case_insensitive(desk):
    (desk / "b.PDF").write_bytes(b"x" * 5)
    (desk / "A.jpg").write_bytes(b"x")
    (desk / "c").mkdir()
    (desk / ".hidden").write_text("h")

    records = list_directory(desk)
    assert [r.name for r in records] == ["A.jpg", "b.PDF", "c"]

    pdf = records[1]
    assert pdf.extension == ".pdf"
    assert pdf.category == FileCategory.DOCUMENTS
    assert pdf.size == 5

    folder = records[2]
    assert folder.is_directory
    assert folder.size == 0
    assert folder.category == FileCategory.OTHERS

def test_list_include_hidden(desk):
    (desk / ".hidden").write_text("h")
    records = list_directory(desk, include_hidden=True)
    assert [r.name for r in records] == [".hidden"]
    assert records[0].is_hidden
    assert records[0].extension == ""

def test_list_recursive(desk):
    sub = desk / "sub"
    sub.mkdir()
    (sub / "deep.mp3").write_bytes(b"m")
    (desk / "top.txt").write_text("t")

    names = [r.name for r in FileInventory().list(desk, recursive=True)]
    assert names == ["deep.mp3", "sub", "top.txt"]
    assert [r.name for r in FileInventory().list(desk)] == ["sub", "top.txt"]

def test_list_errors(desk):
    with pytest.raises(EntryNotFoundError):
        list_directory(desk / "missing")
    f = desk / "file.txt"
    f.write_text("x")
    with pytest.raises(NotADirError):
        list_directory(f)

def test_iter_entries_files_only(desk):
    (desk / "a").mkdir()
    (desk / "a" / "one.txt").write_text("1")
    (desk / "two.txt").write_text("2")
    assert sorted(p.name for p in iter_entries(desk)) == ["one.txt", "two.txt"]

def test_build_record_no_extension(desk):
    f = desk / "Makefile"
    f.write_text("all:")
    rec = build_record(f)
    assert rec.extension == ""
    assert rec.category == FileCategory.OTHERS
    assert rec.stem == "Makefile"
    assert rec.modified is not None
