import pytest

from tidydesk.analysis.duplicates import FolderAnalyzer
from tidydesk.exceptions import TreeBuildError
from tidydesk.formatting import MB


def test_identical_files_form_one_group(desk):
    for i in range(4):
        (desk / f"copy{i}.jpg").write_bytes(b"same content")
    (desk / "sub").mkdir()
    (desk / "sub" / "copy4.jpg").write_bytes(b"same content")

    groups = FolderAnalyzer().find_duplicates(desk)
    assert len(groups) == 1
    assert len(groups[0].files) == 5
    assert groups[0].size == len(b"same content")
    assert groups[0].wasted_space == 4 * len(b"same content")

def test_same_size_different_content(desk):
    for i in range(3):
        (desk / f"f{i}.txt").write_bytes(bytes([i]) * 10)
    assert FolderAnalyzer().find_duplicates(desk) == []

def test_empty_files_are_never_duplicates(desk):
    (desk / "a.txt").write_bytes(b"")
    (desk / "b.txt").write_bytes(b"")
    assert FolderAnalyzer().find_duplicates(desk) == []

def test_groups_ranked_by_wasted_space(desk):
    (desk / "small1").write_bytes(b"s" * 10)
    (desk / "small2").write_bytes(b"s" * 10)
    (desk / "big1").write_bytes(b"b" * 1000)
    (desk / "big2").write_bytes(b"b" * 1000)

    groups = FolderAnalyzer().find_duplicates(desk)
    assert [g.size for g in groups] == [1000, 10]
    wasted = [g.wasted_space for g in groups]
    assert wasted == sorted(wasted, reverse=True)

def test_equal_wasted_space_keeps_first_seen_order(desk):
    # Walk order is by name, so the "zzz" group is seen first
    for name in ("a1", "a2"):
        (desk / name).write_bytes(b"z" * 10)
    for name in ("b1", "b2"):
        (desk / name).write_bytes(b"y" * 10)
    for name in ("c1", "c2", "c3"):
        (desk / name).write_bytes(b"x" * 5)

    groups = FolderAnalyzer().find_duplicates(desk)
    assert [g.wasted_space for g in groups] == [10, 10, 10]
    assert [[f.name for f in g.files] for g in groups] == [["a1", "a2"], ["b1", "b2"], ["c1", "c2", "c3"]]

def test_find_empty_folders(desk):
    (desk / "empty").mkdir()
    (desk / "full").mkdir()
    (desk / "full" / "x.txt").write_text("x")
    (desk / "full" / "nested_empty").mkdir()

    empty = FolderAnalyzer().find_empty_folders(desk)
    assert sorted(empty) == sorted([str(desk / "empty"), str(desk / "full" / "nested_empty")])

    other = desk.parent / "nothing"
    other.mkdir()
    assert FolderAnalyzer().find_empty_folders(other) == [str(other)]

def test_find_large_files(desk):
    (desk / "big.iso").write_bytes(b"\0" * (MB + 1))
    (desk / "bigger.iso").write_bytes(b"\0" * (2 * MB))
    (desk / "small.txt").write_text("tiny")

    large = FolderAnalyzer().find_large_files(desk, 1)
    assert [r.name for r in large] == ["bigger.iso", "big.iso"]

def test_folder_tree_depth(desk):
    (desk / "a" / "b" / "c").mkdir(parents=True)
    (desk / "top.txt").write_bytes(b"1" * 10)
    (desk / "a" / "one.txt").write_bytes(b"1" * 20)
    (desk / "a" / "b" / "two.txt").write_bytes(b"1" * 30)
    (desk / "a" / "b" / "c" / "three.txt").write_bytes(b"1" * 40)

    tree = FolderAnalyzer().get_folder_tree(desk, 1)
    assert [c.name for c in tree.children] == ["a"]
    a = tree.children[0]
    # b lies beyond depth 1 and is left out
    assert a.children == []
    assert a.size == 20
    assert tree.size == 30
    assert tree.file_count == 2

    full = FolderAnalyzer().get_folder_tree(desk, 5)
    assert full.size == 100
    assert full.file_count == 4

def test_folder_tree_requires_directory(desk):
    f = desk / "f.txt"
    f.write_text("x")
    with pytest.raises(TreeBuildError):
        FolderAnalyzer().get_folder_tree(f, 2)

def test_analyze_folder(desk):
    (desk / "a.jpg").write_bytes(b"1" * 100)
    (desk / "b.png").write_bytes(b"1" * 50)
    (desk / "docs").mkdir()
    (desk / "docs" / "c.pdf").write_bytes(b"1" * 10)

    stats = FolderAnalyzer().analyze_folder(desk)
    assert stats.file_count == 3
    assert stats.folder_count == 1
    assert stats.total_size == 160
    assert stats.largest_file.name == "a.jpg"
    assert stats.category_breakdown["images"].count == 2
    assert stats.category_breakdown["images"].total_size == 150
    assert stats.category_breakdown["documents"].count == 1
