"""
Rule evaluation and rule-driven organization.

Precedence for every file:
1. Enabled custom rules, highest priority first; the first match wins.
2. Otherwise the enabled default rule for the file's category.
3. Otherwise the file is left alone.
"""
import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from tqdm import tqdm

from ..classifier import Classifier
from ..exceptions import (
    EntryNotFoundError, FileOperationError, InvalidPatternError, TidyDeskError, UnsupportedActionError,
)
from ..formatting import date_folder
from ..history import BatchPayload, HistoryLedger
from ..models import (
    Condition, DefaultRule, ExecuteRulesResult, FileRecord, OrganizeResult, PlanEntry, Rule, RuleMatch,
)
from ..scanning.filesystem import build_record, iter_entries, require_directory
from .mover import TrashBin, copy_path, move_path, remove_path, same_entry, unique_path

ACTIONS = ("move", "copy", "rename", "delete")

_UNSIGNED = re.compile(r"\+?[0-9]+")
_U64_MAX = 2 ** 64 - 1


# --- Condition evaluation ---

def field_value(file: FileRecord, field: str) -> Optional[str]:
    if field == "name":
        return file.name
    if field == "extension":
        return file.extension
    if field == "size":
        return str(file.size)
    if field == "createdDate":
        return file.created_at
    if field == "modifiedDate":
        return file.modified_at
    return None


def _parse_unsigned(text: str) -> Optional[int]:
    if not _UNSIGNED.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _U64_MAX else None


def validate_pattern(pattern: str):
    """Raises InvalidPatternError if `pattern` is not a valid regular expression."""
    try:
        re.compile(pattern)
    except re.error as e:
        raise InvalidPatternError(f"Invalid pattern {pattern!r}: {e}", operation="validate_pattern") from e


def evaluate_condition(file: FileRecord, condition: Condition) -> bool:
    """
    Textual operators compare case-insensitively. Numeric operators and
    `matches` fail closed: unparsable numbers and invalid patterns are false.
    """
    value = field_value(file, condition.field)
    if value is None:
        return False

    op = condition.operator
    expected = condition.value
    if op == "equals":
        return value.lower() == expected.lower()
    if op == "contains":
        return expected.lower() in value.lower()
    if op == "startsWith":
        return value.lower().startswith(expected.lower())
    if op == "endsWith":
        return value.lower().endswith(expected.lower())
    if op in ("greaterThan", "lessThan"):
        a, b = _parse_unsigned(value), _parse_unsigned(expected)
        if a is None or b is None:
            return False
        return a > b if op == "greaterThan" else a < b
    if op == "matches":
        try:
            return re.search(expected, value) is not None
        except re.error:
            return False
    return False


def evaluate_rule(file: FileRecord, rule: Rule) -> bool:
    """AND needs every condition, anything else needs one. No conditions never matches."""
    results = [evaluate_condition(file, c) for c in rule.conditions]
    if not results:
        return False
    if rule.condition_logic == "AND":
        return all(results)
    return any(results)


def render_rename_pattern(pattern: str, file: FileRecord) -> str:
    """
    Expands {name}, {ext}, {date} and {category}. The original extension is
    kept when the pattern does not place {ext} itself.
    """
    new_name = (pattern
                .replace("{name}", file.stem)
                .replace("{ext}", file.extension)
                .replace("{date}", date_folder(file.modified, "YYYY-MM-DD"))
                .replace("{category}", file.category.value))
    if "{ext}" not in pattern and file.extension and not new_name.lower().endswith(file.extension):
        new_name += file.extension
    return new_name


def action_preview(rule: Rule, file: FileRecord) -> str:
    if rule.action_type == "move":
        return f"Move: {file.name} -> {rule.action_destination}" if rule.action_destination else f"Move: {file.name}"
    if rule.action_type == "copy":
        return f"Copy: {file.name} -> {rule.action_destination}" if rule.action_destination else f"Copy: {file.name}"
    if rule.action_type == "rename":
        if rule.action_rename_pattern:
            return f"Rename: {file.name} -> {render_rename_pattern(rule.action_rename_pattern, file)}"
        return f"Rename: {file.name}"
    if rule.action_type == "delete":
        return f"Delete: {file.name}"
    return f"Unknown action: {file.name}"


# --- Engine ---

class RuleEngine:
    def __init__(self,
                 rules: Iterable[Rule] = (),
                 default_rules: Iterable[DefaultRule] = (),
                 classifier: Optional[Classifier] = None,
                 ledger: Optional[HistoryLedger] = None,
                 trash: Optional[TrashBin] = None):
        # Stable sort keeps insertion (id) order between equal priorities
        self.rules = sorted((r for r in rules if r.enabled), key=lambda r: -r.priority)
        self.default_rules: Dict[str, DefaultRule] = {}
        for d in sorted(default_rules, key=lambda d: d.priority):
            if d.enabled:
                self.default_rules.setdefault(d.category.value, d)
        self.classifier = classifier
        self.ledger = ledger
        self.trash = trash or (ledger.trash if ledger else TrashBin())

    def eligible_files(self, root: Path) -> List[FileRecord]:
        """Regular, non-hidden files directly inside root, in name order."""
        root = require_directory(root)
        records = []
        for path in iter_entries(root, recursive=False, skip_hidden=True):
            try:
                records.append(build_record(path, self.classifier))
            except OSError as e:
                logging.debug(f"Skipping {path}: {e}")
        records.sort(key=lambda r: r.name.lower())
        return records

    def match_custom(self, file: FileRecord) -> Optional[Rule]:
        for rule in self.rules:
            if evaluate_rule(file, rule):
                return rule
        return None

    def plan_for(self, root: Path, file: FileRecord) -> Optional[PlanEntry]:
        rule = self.match_custom(file)
        if rule is not None:
            destination = None
            if rule.action_type in ("move", "copy") and rule.action_destination:
                destination = self._rule_destination(root, rule, file)
            elif rule.action_type == "rename":
                destination = str(Path(file.path).parent)
            return PlanEntry(file=file, match_type="custom", action_type=rule.action_type,
                             destination=destination, rule=rule)

        default = self.default_rules.get(file.category.value)
        if default is not None:
            folder = Path(root) / default.destination
            if default.create_date_subfolder:
                folder = folder / date_folder(file.modified, "YYYY-MM")
            return PlanEntry(file=file, match_type="default", action_type="move",
                             destination=str(folder), default_rule=default)
        return None

    @staticmethod
    def _rule_destination(root: Path, rule: Rule, file: FileRecord) -> str:
        folder = Path(rule.action_destination)
        if not folder.is_absolute():
            folder = Path(root) / folder
        if rule.create_date_subfolder:
            folder = folder / date_folder(file.modified, "YYYY-MM")
        return str(folder)

    # --- Unified organization ---

    def preview_unified(self, root: Path, exclusions: Sequence[str] = ()) -> List[PlanEntry]:
        root = Path(os.path.abspath(root))
        excluded = self._normalize_exclusions(root, exclusions)

        plan = []
        for file in self.eligible_files(root):
            entry = self.plan_for(root, file)
            if entry is None:
                logging.debug(f"No rule for {file.name}")
                continue
            if self._is_excluded(entry, excluded):
                logging.debug(f"{file.name}: destination {entry.destination} excluded")
                continue
            plan.append(entry)
        return plan

    def execute_unified(self, root: Path, exclusions: Sequence[str] = (), strategy: str = "rename") -> OrganizeResult:
        """
        Runs the unified plan. Conflicting destinations follow `strategy`
        (rename, overwrite or skip). One history entry is recorded for any
        non-empty plan, listing only the items that completed.
        """
        root = Path(os.path.abspath(root))
        plan = self.preview_unified(root, exclusions)
        result = OrganizeResult()
        if not plan:
            logging.info(f"Nothing to organize in {root}")
            return result

        logging.info(f"Organizing {len(plan)} files in {root}...")
        pairs, copies, trashed = [], [], []
        for entry in tqdm(plan, desc="Organizing", disable=None):
            try:
                outcome = self.execute_action(entry, strategy)
            except TidyDeskError as e:
                logging.error(f"Failed to process {entry.file.name}: {e}")
                result.errors.append(f"{entry.file.name}: {e}")
                continue
            if outcome is None:
                result.files_skipped += 1
                continue
            self._collect(entry.action_type, entry.file.path, outcome, pairs, copies, trashed)
            result.files_moved += 1

        payload = BatchPayload(pairs=tuple(pairs), copies=tuple(copies), trashed=tuple(trashed))
        if self.ledger is not None:
            result.history_id = self.ledger.record(
                "organize", f"Organized {result.files_moved} files in {root.name}", payload
            )
        logging.info(
            f"Organize complete: {result.files_moved} moved, {result.files_skipped} skipped, "
            f"{len(result.errors)} error(s)"
        )
        return result

    # --- Custom rules only ---

    def preview_rules(self, root: Path) -> List[RuleMatch]:
        root = Path(os.path.abspath(root))
        if not self.rules:
            return []
        matches = []
        for file in self.eligible_files(root):
            rule = self.match_custom(file)
            if rule is not None:
                matches.append(RuleMatch(file=file, rule=rule, action_preview=action_preview(rule, file)))
        return matches

    def execute_rules(self, root: Path) -> ExecuteRulesResult:
        root = Path(os.path.abspath(root))
        result = ExecuteRulesResult()
        matches = self.preview_rules(root)
        if not matches:
            return result

        pairs, copies, trashed = [], [], []
        for m in tqdm(matches, desc="Applying rules", disable=None):
            entry = self.plan_for(root, m.file)
            try:
                outcome = self.execute_action(entry)
            except TidyDeskError as e:
                logging.error(f"Rule '{m.rule.name}' failed on {m.file.name}: {e}")
                result.errors.append(f"{m.file.name}: {e}")
                result.skipped_count += 1
                continue
            if outcome is None:
                result.skipped_count += 1
                continue
            self._collect(entry.action_type, m.file.path, outcome, pairs, copies, trashed)
            result.executed_count += 1

        if result.executed_count > 0 and self.ledger is not None:
            payload = BatchPayload(pairs=tuple(pairs), copies=tuple(copies), trashed=tuple(trashed))
            result.history_id = self.ledger.record(
                "organize", f"Applied rules to {result.executed_count} files", payload
            )
        logging.info(f"Rules applied: {result.executed_count} executed, {result.skipped_count} skipped")
        return result

    # --- Actions ---

    def execute_action(self, entry: PlanEntry, strategy: str = "rename") -> Optional[str]:
        """
        Performs one plan entry and returns the resulting path, or None when
        nothing was done: the destination was taken under the skip strategy,
        or the file already sits at its destination.
        """
        source = Path(entry.file.path)
        action = entry.action_type
        if action not in ACTIONS:
            raise UnsupportedActionError(f"Unsupported action: {action}", path=source, operation=action)
        if not source.exists():
            raise EntryNotFoundError(f"File does not exist: {source}", path=source, operation=action)

        if action == "delete":
            self.trash.send(source)
            logging.debug(f"Trashed {source}")
            return str(source)

        if action == "rename":
            pattern = entry.rule.action_rename_pattern if entry.rule else None
            if not pattern:
                raise FileOperationError("Rename rule has no pattern", path=source, operation="rename")
            new_name = render_rename_pattern(pattern, entry.file)
            if not new_name or os.sep in new_name or (os.altsep and os.altsep in new_name):
                raise FileOperationError(f"Invalid file name: {new_name!r}", path=source, operation="rename")
            target = source.parent / new_name
            if target == source:
                return str(source)
            target = unique_path(target)
            move_path(source, target)
            logging.debug(f"Renamed {source} -> {target}")
            return str(target)

        if not entry.destination:
            raise FileOperationError("No destination folder set", path=source, operation=action)
        folder = Path(entry.destination)
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileOperationError(f"Cannot create {folder}: {e}", path=folder, operation=action) from e

        target = folder / source.name
        if same_entry(source, target):
            logging.debug(f"{source.name} is already in {folder}")
            return None
        if target.exists():
            if strategy == "skip":
                logging.debug(f"{target} exists, skipping {source.name}")
                return None
            if strategy == "overwrite":
                try:
                    remove_path(target)
                except OSError as e:
                    raise FileOperationError(f"Cannot replace {target}: {e}", path=target, operation=action) from e
            else:
                target = unique_path(target)

        if action == "move":
            move_path(source, target)
        else:
            try:
                copy_path(source, target)
            except OSError as e:
                raise FileOperationError(f"Cannot copy {source} -> {target}: {e}", path=source, operation="copy") from e
        logging.debug(f"{action} {source} -> {target}")
        return str(target)

    @staticmethod
    def _collect(action: str, original: str, outcome: str,
                 pairs: List[Tuple[str, str]], copies: List[str], trashed: List[str]):
        if action == "copy":
            copies.append(outcome)
        elif action == "delete":
            trashed.append(original)
        elif outcome != original:
            pairs.append((original, outcome))

    @staticmethod
    def _normalize_exclusions(root: Path, exclusions: Sequence[str]) -> set:
        excluded = set()
        for folder in exclusions:
            p = Path(folder)
            if not p.is_absolute():
                p = root / p
            excluded.add(os.path.normcase(os.path.abspath(p)))
        return excluded

    @staticmethod
    def _is_excluded(entry: PlanEntry, excluded: set) -> bool:
        if not excluded or not entry.destination:
            return False
        dest = Path(entry.destination)
        # Date subfolders sit under the excluded folder
        candidates = [dest] + list(dest.parents)
        return any(os.path.normcase(os.path.abspath(c)) in excluded for c in candidates)
