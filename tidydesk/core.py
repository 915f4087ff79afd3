import logging
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Sequence

from .analysis.compare import FolderComparer
from .analysis.duplicates import FolderAnalyzer
from .classifier import Classifier
from .database.db import DBManager
from .database.ops import DBOperations
from .exceptions import EntryNotFoundError
from .history import HistoryEntry, HistoryLedger
from .models import (
    BackupInfo, BackupResult, CompareSummary, DefaultRule, DuplicateGroup, ExecuteRulesResult,
    Exclusion, ExtensionMapping, FileRecord, FolderStats, FolderTreeNode, MergeOptions, MergeResult,
    OrganizeOptions, OrganizePreview, OrganizeResult, PlanEntry, RenamePreview, RenameResult,
    RenameStep, Rule, RuleMatch, UndoResult,
)
from .organization.backup import BackupManager
from .organization.executor import FileOperations, OverwriteStrategy
from .organization.mover import TrashBin
from .organization.organizer import CategoryOrganizer
from .organization.renamer import BatchRenamer
from .organization.rules import RuleEngine, validate_pattern
from .scanning.filesystem import FileInventory
from .scanning.hasher import FileHasher
from .settings import AppSettings, get_settings, update_settings
from .watcher import FileWatcher, WatchEvent


class TidyDeskApp:
    """
    One method per operation. Each call opens its own short-lived database
    connection and releases it before any heavy file I/O starts.
    """

    def __init__(self, db_path: Path, trash: Optional[TrashBin] = None):
        self.db_manager = DBManager(db_path)
        self.trash = trash or TrashBin()
        self.history = HistoryLedger(self.db_manager, self.trash)
        self.hasher = FileHasher()
        self.watcher = FileWatcher()

    # --- Loading persisted configuration ---

    def classifier(self) -> Classifier:
        with self.db_manager as conn:
            mappings = DBOperations(conn).list_extension_mappings()
        return Classifier(mappings)

    def rule_engine(self) -> RuleEngine:
        with self.db_manager as conn:
            ops = DBOperations(conn)
            rules = ops.list_rules(enabled_only=True)
            defaults = ops.list_default_rules(enabled_only=True)
            mappings = ops.list_extension_mappings()
        return RuleEngine(rules, defaults, Classifier(mappings), ledger=self.history, trash=self.trash)

    # --- Inventory & analysis ---

    def list_files(self, root: Path, recursive: bool = False, include_hidden: bool = False) -> List[FileRecord]:
        return FileInventory(self.classifier()).list(root, recursive=recursive, include_hidden=include_hidden)

    def analyzer(self) -> FolderAnalyzer:
        return FolderAnalyzer(self.hasher, self.classifier())

    def analyze_folder(self, root: Path) -> FolderStats:
        return self.analyzer().analyze_folder(root)

    def find_duplicates(self, root: Path) -> List[DuplicateGroup]:
        return self.analyzer().find_duplicates(root)

    def find_empty_folders(self, root: Path) -> List[str]:
        return self.analyzer().find_empty_folders(root)

    def find_large_files(self, root: Path, threshold_mb: int) -> List[FileRecord]:
        return self.analyzer().find_large_files(root, threshold_mb)

    def get_folder_tree(self, root: Path, max_depth: int) -> FolderTreeNode:
        return self.analyzer().get_folder_tree(root, max_depth)

    def compare_folders(self, source: Path, target: Path) -> CompareSummary:
        return FolderComparer(self.hasher, self.classifier()).compare(source, target)

    def merge_folders(self, source: Path, target: Path, options: Optional[MergeOptions] = None) -> MergeResult:
        return FolderComparer(self.hasher, self.classifier()).merge(source, target, options)

    # --- Rules ---

    def list_rules(self) -> List[Rule]:
        with self.db_manager as conn:
            return DBOperations(conn).list_rules()

    def save_rule(self, rule: Rule) -> Rule:
        for cond in rule.conditions:
            if cond.operator == "matches":
                validate_pattern(cond.value)
        with self.db_manager as conn:
            rule.id = DBOperations(conn).save_rule(rule)
        logging.info(f"Saved rule #{rule.id} '{rule.name}'")
        return rule

    def set_rule_enabled(self, rule_id: int, enabled: bool):
        with self.db_manager as conn:
            DBOperations(conn).set_rule_enabled(rule_id, enabled)

    def delete_rule(self, rule_id: int):
        with self.db_manager as conn:
            if not DBOperations(conn).delete_rule(rule_id):
                raise EntryNotFoundError(f"Rule {rule_id} not found", operation="delete_rule")
        logging.info(f"Deleted rule #{rule_id}")

    def list_default_rules(self) -> List[DefaultRule]:
        with self.db_manager as conn:
            return DBOperations(conn).list_default_rules()

    def save_default_rule(self, rule: DefaultRule) -> DefaultRule:
        with self.db_manager as conn:
            rule.id = DBOperations(conn).save_default_rule(rule)
        return rule

    def list_extension_mappings(self) -> List[ExtensionMapping]:
        with self.db_manager as conn:
            return DBOperations(conn).list_extension_mappings()

    def save_extension_mapping(self, mapping: ExtensionMapping) -> ExtensionMapping:
        with self.db_manager as conn:
            mapping.id = DBOperations(conn).upsert_extension_mapping(mapping)
        return mapping

    def add_exclusion(self, pattern: str, pattern_type: str = "folder") -> int:
        with self.db_manager as conn:
            return DBOperations(conn).add_exclusion(pattern, pattern_type)

    def list_exclusions(self) -> List[Exclusion]:
        with self.db_manager as conn:
            return DBOperations(conn).list_exclusions()

    def preview_rules(self, root: Path) -> List[RuleMatch]:
        return self.rule_engine().preview_rules(root)

    def execute_rules(self, root: Path) -> ExecuteRulesResult:
        return self.rule_engine().execute_rules(root)

    def preview_unified(self, root: Path, exclusions: Sequence[str] = ()) -> List[PlanEntry]:
        return self.rule_engine().preview_unified(root, exclusions)

    def execute_unified(self, root: Path, exclusions: Sequence[str] = (), strategy: str = "rename") -> OrganizeResult:
        return self.rule_engine().execute_unified(root, exclusions, strategy)

    # --- Category organization ---

    def preview_organization(self, root: Path) -> List[OrganizePreview]:
        return CategoryOrganizer(self.classifier(), self.history).preview(root)

    def execute_organization(self, root: Path, options: Optional[OrganizeOptions] = None) -> OrganizeResult:
        return CategoryOrganizer(self.classifier(), self.history).execute(root, options)

    # --- Direct file operations ---

    @property
    def files(self) -> FileOperations:
        return FileOperations(self.history, self.trash)

    def move(self, source: Path, dest: Path, strategy: OverwriteStrategy = OverwriteStrategy.RENAME) -> Path:
        return self.files.move(source, dest, strategy)

    def copy(self, source: Path, dest: Path, strategy: OverwriteStrategy = OverwriteStrategy.RENAME) -> Path:
        return self.files.copy(source, dest, strategy)

    def rename(self, path: Path, new_name: str) -> Path:
        return self.files.rename(path, new_name)

    def delete(self, path: Path, to_trash: Optional[bool] = None):
        if to_trash is None:
            to_trash = self.settings().use_trash
        self.files.delete(path, to_trash)

    def create_folder(self, path: Path) -> Path:
        return self.files.create_folder(path)

    def preview_rename(self, paths: Sequence[Path], steps: Sequence[RenameStep]) -> List[RenamePreview]:
        return BatchRenamer().preview(paths, steps)

    def execute_rename(self, paths: Sequence[Path], steps: Sequence[RenameStep]) -> RenameResult:
        return BatchRenamer(self.history).execute(paths, steps)

    # --- History ---

    def get_history(self, limit: int = 50, offset: int = 0) -> List[HistoryEntry]:
        return self.history.list(limit, offset)

    def undo(self, history_id: int) -> UndoResult:
        return self.history.undo(history_id)

    def clear_history(self) -> int:
        return self.history.clear()

    # --- Backups ---

    def backups(self, backup_root: Optional[Path] = None) -> BackupManager:
        return BackupManager(backup_root or Path(self.settings().backup_root))

    def backup_directory(self, source: Path, backup_root: Optional[Path] = None) -> BackupResult:
        return self.backups(backup_root).backup_directory(source)

    def list_backups(self, backup_root: Optional[Path] = None) -> List[BackupInfo]:
        return self.backups(backup_root).list_backups()

    def restore_backup(self, backup_path: Path, destination: Optional[Path] = None) -> int:
        return BackupManager(Path(backup_path).parent).restore_backup(backup_path, destination)

    def delete_backup(self, backup_path: Path, backup_root: Optional[Path] = None):
        self.backups(backup_root).delete_backup(backup_path)

    # --- Settings ---

    def settings(self) -> AppSettings:
        return get_settings(self.db_manager)

    def update_settings(self, changes: Mapping[str, Any]) -> AppSettings:
        return update_settings(self.db_manager, changes)

    # --- Watcher ---

    def start_watching(self, path: Path, callback: Callable[[WatchEvent], None]):
        self.watcher.start(path, callback)

    def stop_watching(self):
        self.watcher.stop()

    def is_watching(self) -> bool:
        return self.watcher.is_watching

    def watching_path(self) -> Optional[str]:
        return self.watcher.watching_path
