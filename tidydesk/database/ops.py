import json
import sqlite3
import logging
from typing import Dict, List, Optional, Tuple

from ..classifier import normalize_extension
from ..exceptions import EntryNotFoundError
from ..models import Condition, DefaultRule, Exclusion, ExtensionMapping, FileCategory, Rule

# (id, operation_type, description, details, files_affected, is_undone, created_at)
HistoryRow = Tuple[int, str, str, Optional[str], int, int, str]

_RULE_COLUMNS = """
    id, name, priority, enabled, conditions, condition_logic, action_type,
    action_destination, action_rename_pattern, create_date_subfolder
"""

_HISTORY_COLUMNS = "id, operation_type, description, details, files_affected, is_undone, created_at"


def _row_to_rule(row) -> Rule:
    (rule_id, name, priority, enabled, conditions_json, logic, action_type,
     destination, rename_pattern, date_subfolder) = row
    try:
        conditions = [Condition.from_dict(c) for c in json.loads(conditions_json or "[]")]
    except (ValueError, TypeError, AttributeError) as e:
        # A rule with unreadable conditions never matches
        logging.warning(f"Rule {rule_id} has unreadable conditions: {e}")
        conditions = []
    return Rule(
        id=rule_id,
        name=name,
        priority=priority,
        enabled=bool(enabled),
        conditions=conditions,
        condition_logic=logic or "AND",
        action_type=action_type,
        action_destination=destination,
        action_rename_pattern=rename_pattern,
        create_date_subfolder=bool(date_subfolder),
    )


def _row_to_default_rule(row) -> DefaultRule:
    rule_id, category, destination, enabled, date_subfolder, priority = row
    return DefaultRule(
        id=rule_id,
        category=FileCategory(category),
        destination=destination,
        enabled=bool(enabled),
        create_date_subfolder=bool(date_subfolder),
        priority=priority,
    )


class DBOperations:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # --- Settings ---

    def get_setting(self, key: str) -> Optional[str]:
        cur = self.conn.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = cur.fetchone()
        return row[0] if row else None

    def set_setting(self, key: str, value: str):
        self.conn.execute("""
            INSERT INTO settings (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
        """, (key, value))

    def get_all_settings(self) -> Dict[str, str]:
        cur = self.conn.execute("SELECT key, value FROM settings")
        return {k: v for k, v in cur.fetchall()}

    # --- Custom rules ---

    def list_rules(self, enabled_only: bool = False) -> List[Rule]:
        """Rules in evaluation order: priority descending, then insertion order."""
        sql = f"SELECT {_RULE_COLUMNS} FROM rules"
        if enabled_only:
            sql += " WHERE enabled = 1"
        sql += " ORDER BY priority DESC, id ASC"
        return [_row_to_rule(r) for r in self.conn.execute(sql).fetchall()]

    def get_rule(self, rule_id: int) -> Optional[Rule]:
        cur = self.conn.execute(f"SELECT {_RULE_COLUMNS} FROM rules WHERE id = ?", (rule_id,))
        row = cur.fetchone()
        return _row_to_rule(row) if row else None

    def save_rule(self, rule: Rule) -> int:
        """Inserts when `rule.id` is None, otherwise updates. Returns the id."""
        conditions_json = json.dumps([c.to_dict() for c in rule.conditions])
        params = (
            rule.name, rule.priority, int(rule.enabled), conditions_json, rule.condition_logic,
            rule.action_type, rule.action_destination, rule.action_rename_pattern,
            int(rule.create_date_subfolder),
        )

        cur = self.conn.cursor()
        if rule.id is None:
            cur.execute("""
                INSERT INTO rules (
                    name, priority, enabled, conditions, condition_logic, action_type,
                    action_destination, action_rename_pattern, create_date_subfolder
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, params)
            if cur.lastrowid is None:
                raise RuntimeError("Database INSERT failed to return a row ID.")
            return cur.lastrowid

        cur.execute("""
            UPDATE rules
            SET name = ?, priority = ?, enabled = ?, conditions = ?, condition_logic = ?,
                action_type = ?, action_destination = ?, action_rename_pattern = ?,
                create_date_subfolder = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        """, params + (rule.id,))
        if cur.rowcount == 0:
            raise EntryNotFoundError(f"Rule {rule.id} not found", operation="save_rule")
        return rule.id

    def set_rule_enabled(self, rule_id: int, enabled: bool):
        cur = self.conn.execute(
            "UPDATE rules SET enabled = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (int(enabled), rule_id),
        )
        if cur.rowcount == 0:
            raise EntryNotFoundError(f"Rule {rule_id} not found", operation="set_rule_enabled")

    def delete_rule(self, rule_id: int) -> bool:
        cur = self.conn.execute("DELETE FROM rules WHERE id = ?", (rule_id,))
        return cur.rowcount > 0

    # --- Default rules ---

    def list_default_rules(self, enabled_only: bool = False) -> List[DefaultRule]:
        sql = "SELECT id, category, destination, enabled, create_date_subfolder, priority FROM default_rules"
        if enabled_only:
            sql += " WHERE enabled = 1"
        sql += " ORDER BY priority ASC, id ASC"
        rules = []
        for row in self.conn.execute(sql).fetchall():
            try:
                rules.append(_row_to_default_rule(row))
            except ValueError:
                logging.warning(f"Ignoring default rule with unknown category {row[1]!r}")
        return rules

    def get_default_rule(self, category: FileCategory) -> Optional[DefaultRule]:
        cur = self.conn.execute(
            "SELECT id, category, destination, enabled, create_date_subfolder, priority "
            "FROM default_rules WHERE category = ?",
            (FileCategory(category).value,),
        )
        row = cur.fetchone()
        return _row_to_default_rule(row) if row else None

    def save_default_rule(self, rule: DefaultRule) -> int:
        """Upserts by category (one default rule per category)."""
        cur = self.conn.cursor()
        cur.execute("""
            INSERT INTO default_rules (category, destination, enabled, create_date_subfolder, priority)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(category) DO UPDATE SET
                destination = excluded.destination,
                enabled = excluded.enabled,
                create_date_subfolder = excluded.create_date_subfolder,
                priority = excluded.priority
        """, (
            FileCategory(rule.category).value, rule.destination, int(rule.enabled),
            int(rule.create_date_subfolder), rule.priority,
        ))
        cur.execute("SELECT id FROM default_rules WHERE category = ?", (FileCategory(rule.category).value,))
        return cur.fetchone()[0]

    # --- Extension mappings ---

    def list_extension_mappings(self) -> List[ExtensionMapping]:
        cur = self.conn.execute(
            "SELECT id, extension, category, target_folder FROM extension_mappings ORDER BY category, extension"
        )
        return [
            ExtensionMapping(id=i, extension=ext, category=cat, target_folder=folder)
            for i, ext, cat, folder in cur.fetchall()
        ]

    def get_extension_mapping(self, extension: str) -> Optional[ExtensionMapping]:
        cur = self.conn.execute(
            "SELECT id, extension, category, target_folder FROM extension_mappings WHERE extension = ?",
            (normalize_extension(extension),),
        )
        row = cur.fetchone()
        if not row:
            return None
        i, ext, cat, folder = row
        return ExtensionMapping(id=i, extension=ext, category=cat, target_folder=folder)

    def upsert_extension_mapping(self, mapping: ExtensionMapping) -> int:
        ext = normalize_extension(mapping.extension)
        cur = self.conn.cursor()
        cur.execute("""
            INSERT INTO extension_mappings (extension, category, target_folder) VALUES (?, ?, ?)
            ON CONFLICT(extension) DO UPDATE SET
                category = excluded.category,
                target_folder = excluded.target_folder
        """, (ext, mapping.category, mapping.target_folder))
        cur.execute("SELECT id FROM extension_mappings WHERE extension = ?", (ext,))
        return cur.fetchone()[0]

    def delete_extension_mapping(self, extension: str) -> bool:
        cur = self.conn.execute(
            "DELETE FROM extension_mappings WHERE extension = ?", (normalize_extension(extension),)
        )
        return cur.rowcount > 0

    # --- Exclusions ---

    def add_exclusion(self, pattern: str, pattern_type: str) -> int:
        cur = self.conn.cursor()
        cur.execute("INSERT INTO exclusions (pattern, pattern_type) VALUES (?, ?)", (pattern, pattern_type))
        return cur.lastrowid

    def list_exclusions(self) -> List[Exclusion]:
        cur = self.conn.execute("SELECT id, pattern, pattern_type FROM exclusions ORDER BY id")
        return [Exclusion(id=i, pattern=p, pattern_type=t) for i, p, t in cur.fetchall()]

    def delete_exclusion(self, exclusion_id: int) -> bool:
        cur = self.conn.execute("DELETE FROM exclusions WHERE id = ?", (exclusion_id,))
        return cur.rowcount > 0

    # --- History ---

    def add_history(self, operation_type: str, description: str, details: str, files_affected: int = 1) -> int:
        cur = self.conn.cursor()
        cur.execute("""
            INSERT INTO history (operation_type, description, details, files_affected)
            VALUES (?, ?, ?, ?)
        """, (operation_type, description, details, files_affected))
        if cur.lastrowid is None:
            raise RuntimeError("Database INSERT failed to return a row ID.")
        return cur.lastrowid

    def get_history(self, history_id: int) -> Optional[HistoryRow]:
        cur = self.conn.execute(f"SELECT {_HISTORY_COLUMNS} FROM history WHERE id = ?", (history_id,))
        return cur.fetchone()

    def list_history(self, limit: int = 50, offset: int = 0) -> List[HistoryRow]:
        """Newest first; id order is insertion order."""
        cur = self.conn.execute(
            f"SELECT {_HISTORY_COLUMNS} FROM history ORDER BY id DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return cur.fetchall()

    def mark_history_undone(self, history_id: int) -> bool:
        cur = self.conn.execute(
            "UPDATE history SET is_undone = 1 WHERE id = ? AND is_undone = 0", (history_id,)
        )
        return cur.rowcount > 0

    def clear_history(self) -> int:
        cur = self.conn.execute("DELETE FROM history")
        return cur.rowcount
