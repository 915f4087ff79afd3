import pytest

from tidydesk import config
from tidydesk.database.db import DBManager
from tidydesk.database.ops import DBOperations
from tidydesk.database.schema import init_schema
from tidydesk.exceptions import DatabaseError, EntryNotFoundError
from tidydesk.models import Condition, DefaultRule, ExtensionMapping, FileCategory, Rule


def test_default_rules_seeded(db_ops):
    rules = db_ops.list_default_rules()
    assert [(r.category.value, r.destination) for r in rules] == config.DEFAULT_RULE_SEEDS
    assert all(r.enabled for r in rules)

def test_init_schema_is_idempotent(conn, db_ops):
    init_schema(conn)
    init_schema(conn)
    assert len(db_ops.list_default_rules()) == len(config.DEFAULT_RULE_SEEDS)
    assert len(db_ops.list_extension_mappings()) == len(config.EXT_TO_CATEGORY)
    assert conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0] == 1

def test_rule_roundtrip_and_order(db_ops):
    cond = [Condition("extension", "equals", ".pdf"), Condition("size", "greaterThan", "10")]
    low = db_ops.save_rule(Rule("low", cond, priority=1))
    high = db_ops.save_rule(Rule("high", cond, condition_logic="OR", priority=9, create_date_subfolder=True))
    tie = db_ops.save_rule(Rule("tie", cond, priority=1, action_type="copy", action_destination="Copies"))

    assert [r.id for r in db_ops.list_rules()] == [high, low, tie]
    stored = db_ops.get_rule(high)
    assert stored.conditions == cond
    assert stored.condition_logic == "OR"
    assert stored.create_date_subfolder

    db_ops.set_rule_enabled(low, False)
    assert [r.id for r in db_ops.list_rules(enabled_only=True)] == [high, tie]

    stored.name = "renamed"
    db_ops.save_rule(stored)
    assert db_ops.get_rule(high).name == "renamed"

    assert db_ops.delete_rule(tie)
    assert not db_ops.delete_rule(tie)

def test_update_missing_rule(db_ops):
    with pytest.raises(EntryNotFoundError):
        db_ops.save_rule(Rule("ghost", id=404))
    with pytest.raises(EntryNotFoundError):
        db_ops.set_rule_enabled(404, True)

def test_unreadable_conditions_never_match(db_ops):
    db_ops.conn.execute(
        "INSERT INTO rules (name, conditions, action_type) VALUES ('bad', '{not json', 'move')"
    )
    assert db_ops.list_rules()[0].conditions == []

def test_default_rule_upsert(db_ops):
    rule_id = db_ops.save_default_rule(DefaultRule(FileCategory.IMAGES, "Pictures", enabled=False))
    again = db_ops.get_default_rule(FileCategory.IMAGES)
    assert again.id == rule_id
    assert again.destination == "Pictures"
    assert not again.enabled
    assert len(db_ops.list_default_rules()) == len(config.DEFAULT_RULE_SEEDS)
    assert FileCategory.IMAGES not in [r.category for r in db_ops.list_default_rules(enabled_only=True)]

def test_extension_mapping_upsert(db_ops):
    db_ops.upsert_extension_mapping(ExtensionMapping("TXT", "code", "Snippets"))
    m = db_ops.get_extension_mapping(".txt")
    assert (m.extension, m.category, m.target_folder) == (".txt", "code", "Snippets")

    db_ops.upsert_extension_mapping(ExtensionMapping(".blend", "others", "3D"))
    assert db_ops.get_extension_mapping("blend").target_folder == "3D"
    assert db_ops.delete_extension_mapping(".blend")
    assert db_ops.get_extension_mapping(".blend") is None

def test_settings(db_ops):
    assert db_ops.get_setting("theme") is None
    db_ops.set_setting("theme", "light")
    db_ops.set_setting("theme", "dark")
    assert db_ops.get_all_settings() == {"theme": "dark"}

def test_exclusions(db_ops):
    first = db_ops.add_exclusion("Projects", "folder")
    db_ops.add_exclusion("*.tmp", "glob")
    assert [e.pattern for e in db_ops.list_exclusions()] == ["Projects", "*.tmp"]
    assert db_ops.delete_exclusion(first)
    assert len(db_ops.list_exclusions()) == 1

def test_history(db_ops):
    a = db_ops.add_history("move", "first", "{}")
    b = db_ops.add_history("organize", "second", "{}", files_affected=5)
    rows = db_ops.list_history()
    assert [r[0] for r in rows] == [b, a]
    assert rows[0][4] == 5
    assert [r[0] for r in db_ops.list_history(limit=1, offset=1)] == [a]

    assert db_ops.mark_history_undone(a)
    assert not db_ops.mark_history_undone(a)
    assert db_ops.get_history(a)[5] == 1
    assert db_ops.clear_history() == 2

def test_manager_commits_and_rolls_back(db_manager):
    with db_manager as conn:
        DBOperations(conn).set_setting("kept", "1")

    with pytest.raises(RuntimeError):
        with db_manager as conn:
            DBOperations(conn).set_setting("lost", "1")
            raise RuntimeError("boom")

    with db_manager as conn:
        assert DBOperations(conn).get_all_settings() == {"kept": "1"}

def test_manager_unopenable_path(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    with pytest.raises(DatabaseError):
        with DBManager(blocker / "sub" / "db.sqlite"):
            pass
