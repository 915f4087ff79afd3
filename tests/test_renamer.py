import pytest

from tidydesk.models import RenameStep
from tidydesk.organization.renamer import BatchRenamer


@pytest.fixture
def photos(desk):
    paths = []
    for name in ("IMG one.JPG", "IMG two.JPG", "IMG three.JPG"):
        p = desk / name
        p.write_text(name)
        paths.append(p)
    return paths


def _names(previews):
    return [p.new_name for p in previews]

def test_steps_apply_in_order(photos):
    steps = [
        RenameStep("findReplace", find_text="IMG ", replace_text=""),
        RenameStep("case", case_type="title"),
        RenameStep("prefix", prefix="trip_"),
        RenameStep("sequence", start_number=7, digit_count=2),
    ]
    assert _names(BatchRenamer().preview(photos, steps)) == [
        "trip_One_07.JPG", "trip_Two_08.JPG", "trip_Three_09.JPG",
    ]

def test_regex_step_with_dollar_groups(photos):
    steps = [RenameStep("regex", regex_pattern=r"IMG (\w+)", regex_replace="$1-photo")]
    assert _names(BatchRenamer().preview(photos, steps))[0] == "one-photo.JPG"

def test_invalid_regex_leaves_name(photos):
    steps = [RenameStep("regex", regex_pattern="(", regex_replace="x")]
    assert _names(BatchRenamer().preview(photos, steps)) == [p.name for p in photos]

def test_default_sequence(photos):
    assert _names(BatchRenamer().preview(photos, [RenameStep("sequence")]))[0] == "IMG one_001.JPG"

def test_conflicts_flagged(photos):
    steps = [RenameStep("regex", regex_pattern=r".*", regex_replace="same")]
    previews = BatchRenamer().preview(photos, steps)
    assert [p.has_conflict for p in previews] == [False, True, True]

def test_execute_and_undo(app, photos, desk):
    steps = [RenameStep("case", case_type="lower")]
    result = app.execute_rename(photos, steps)
    assert result.renamed_count == 3
    assert sorted(p.name for p in desk.iterdir()) == ["img one.JPG", "img three.JPG", "img two.JPG"]

    app.undo(result.history_id)
    assert sorted(p.name for p in desk.iterdir()) == ["IMG one.JPG", "IMG three.JPG", "IMG two.JPG"]

def test_execute_skips_conflicts_and_existing(desk):
    a = desk / "a.txt"
    b = desk / "b.txt"
    a.write_text("a")
    b.write_text("b")
    (desk / "new_a.txt").write_text("taken")

    result = BatchRenamer().execute([a, b], [RenameStep("prefix", prefix="new_")])
    assert result.renamed_count == 1
    assert result.failed_count == 1
    assert (desk / "new_b.txt").exists()
    assert a.exists()
