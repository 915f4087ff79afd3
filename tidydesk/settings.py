"""
User settings stored in the `settings` key/value table.
"""
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping

from . import config
from .database.db import DBManager
from .database.ops import DBOperations
from .exceptions import TidyDeskError


def _default_desktop() -> str:
    return str(Path.home() / "Desktop")


@dataclass
class AppSettings:
    desktop_path: str = ""
    language: str = "ko"
    theme: str = "dark"
    enable_watcher: bool = False
    auto_organize_on_startup: bool = False
    default_date_format: str = config.DEFAULT_DATE_FOLDER_FORMAT
    show_hidden_files: bool = False
    confirm_before_delete: bool = True
    use_trash: bool = True
    backup_root: str = ""

    def __post_init__(self):
        if not self.desktop_path:
            self.desktop_path = _default_desktop()
        if not self.backup_root:
            self.backup_root = str(config.DATA_DIR / config.BACKUP_DIRNAME)


_BOOL_KEYS = {f.name for f in fields(AppSettings) if f.type in (bool, "bool")}
_KEYS = {f.name for f in fields(AppSettings)}


def _to_text(key: str, value: Any) -> str:
    if key in _BOOL_KEYS:
        if isinstance(value, str):
            value = value.strip().lower() in ("1", "true", "yes", "on")
        return "true" if value else "false"
    return str(value)


def get_settings(db: DBManager) -> AppSettings:
    """Stored values over defaults; unknown keys in the table are ignored."""
    with db as conn:
        stored = DBOperations(conn).get_all_settings()

    values: Dict[str, Any] = {}
    for key, raw in stored.items():
        if key not in _KEYS:
            continue
        values[key] = raw == "true" if key in _BOOL_KEYS else raw
    return AppSettings(**values)


def update_settings(db: DBManager, changes: Mapping[str, Any]) -> AppSettings:
    unknown = set(changes) - _KEYS
    if unknown:
        raise TidyDeskError(f"Unknown setting(s): {', '.join(sorted(unknown))}", operation="settings")

    with db as conn:
        ops = DBOperations(conn)
        for key, value in changes.items():
            ops.set_setting(key, _to_text(key, value))
    logging.info(f"Updated settings: {', '.join(sorted(changes))}")
    return get_settings(db)
