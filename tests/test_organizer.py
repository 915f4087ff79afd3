import os

from tidydesk.models import FileCategory, OrganizeOptions
from tidydesk.organization.organizer import CategoryOrganizer


def test_preview_groups_by_folder(desk):
    for name in ("a.jpg", "b.png", "c.gif", "notes.txt", "song.mp3"):
        (desk / name).write_text(name)
    (desk / ".hidden.jpg").write_text("h")

    previews = CategoryOrganizer().preview(desk)
    assert previews[0].category == FileCategory.IMAGES
    assert previews[0].file_count == 3
    assert previews[0].destination_folder == str(desk / "Images")
    assert previews[0].category_label == "이미지"
    assert sorted(p.category for p in previews[1:]) == sorted([FileCategory.DOCUMENTS, FileCategory.MUSIC])

def test_execute_with_numbered_duplicates(desk, ledger):
    (desk / "a.jpg").write_text("new")
    (desk / "Images").mkdir()
    (desk / "Images" / "a.jpg").write_text("old")
    (desk / "readme").write_text("r")

    result = CategoryOrganizer(ledger=ledger).execute(desk)
    assert result.success
    assert result.files_moved == 2
    assert (desk / "Images" / "a (1).jpg").read_text() == "new"
    assert (desk / "Others" / "readme").exists()
    assert ledger.get(result.history_id).files_affected == 2

def test_execute_skip_duplicates(desk):
    (desk / "a.jpg").write_text("new")
    (desk / "Images").mkdir()
    (desk / "Images" / "a.jpg").write_text("old")

    result = CategoryOrganizer().execute(desk, OrganizeOptions(handle_duplicates="skip"))
    assert result.files_skipped == 1
    assert (desk / "a.jpg").exists()
    assert (desk / "Images" / "a.jpg").read_text() == "old"

def test_execute_date_subfolders(desk):
    f = desk / "clip.mp4"
    f.write_text("v")
    os.utime(f, (1700000000, 1700000000))

    CategoryOrganizer().execute(desk, OrganizeOptions(create_date_subfolders=True, date_format="YYYY"))
    assert (desk / "Videos" / "2023" / "clip.mp4").exists()

def test_organize_then_undo(app, desk):
    (desk / "a.pdf").write_text("a")
    (desk / "b.zip").write_text("b")

    result = app.execute_organization(desk)
    assert result.files_moved == 2
    app.undo(result.history_id)
    assert sorted(p.name for p in desk.iterdir()) == ["a.pdf", "b.zip"]

def test_overwrite_never_replaces_the_file_with_itself(desk):
    (desk / "a.jpg").write_text("only copy")
    (desk / "Images").mkdir()
    os.link(desk / "a.jpg", desk / "Images" / "a.jpg")

    result = CategoryOrganizer().execute(desk, OrganizeOptions(handle_duplicates="overwrite"))
    assert result.files_skipped == 1
    assert result.files_moved == 0
    assert (desk / "a.jpg").read_text() == "only copy"
    assert (desk / "Images" / "a.jpg").read_text() == "only copy"
