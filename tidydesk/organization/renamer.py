"""
Batch renaming: ordered steps applied to each file's stem.
"""
import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from ..history import BatchPayload, HistoryLedger
from ..models import RenamePreview, RenameResult, RenameStep
from ..scanning.filesystem import creation_time

_DOLLAR_GROUP = re.compile(r"\$(\d+|\{\w+\})")


def _python_template(replacement: str) -> str:
    """Accepts `$1` / `${name}` group references alongside Python's `\\1`."""
    def sub(m):
        ref = m.group(1).strip("{}")
        return f"\\g<{ref}>"
    return _DOLLAR_GROUP.sub(sub, replacement)


def _title(stem: str) -> str:
    return " ".join(w[:1].upper() + w[1:].lower() for w in stem.split())


def _split(name: str):
    suffix = Path(name).suffix
    if len(suffix) > 1 and len(name) > len(suffix):
        return name[:-len(suffix)], suffix
    return name, ""


class BatchRenamer:
    def __init__(self, ledger: Optional[HistoryLedger] = None):
        self.ledger = ledger

    def apply_step(self, stem: str, step: RenameStep, path: Path, counter: List[int]) -> str:
        kind = step.rule_type
        if kind == "findReplace":
            if step.find_text:
                return stem.replace(step.find_text, step.replace_text or "")
            return stem
        if kind == "prefix":
            return f"{step.prefix or ''}{stem}"
        if kind == "suffix":
            return f"{stem}{step.suffix or ''}"
        if kind == "sequence":
            digits = step.digit_count if step.digit_count is not None else 3
            value = counter[0]
            counter[0] += 1
            return f"{stem}_{value:0{max(digits, 1)}d}"
        if kind == "date":
            try:
                st = path.stat()
            except OSError:
                return stem
            ts = creation_time(st) if step.date_source == "created" else st.st_mtime
            return f"{stem}_{datetime.fromtimestamp(ts).strftime(step.date_format or '%Y%m%d')}"
        if kind == "case":
            case = step.case_type or "lower"
            if case == "upper":
                return stem.upper()
            if case == "lower":
                return stem.lower()
            if case == "title":
                return _title(stem)
            return stem
        if kind == "regex":
            try:
                return re.sub(step.regex_pattern or "", _python_template(step.regex_replace or ""), stem)
            except (re.error, IndexError) as e:
                logging.debug(f"Regex step left {stem!r} unchanged: {e}")
                return stem
        return stem

    def preview(self, paths: Sequence[Path], steps: Sequence[RenameStep]) -> List[RenamePreview]:
        """
        New names in input order. A name already produced earlier in the
        batch is flagged as a conflict.
        """
        # One shared counter, seeded from the first sequence step
        start = next((s.start_number for s in steps if s.rule_type == "sequence" and s.start_number is not None), 1)
        counter = [start]

        previews = []
        seen = set()
        for raw in paths:
            path = Path(raw)
            stem, ext = _split(path.name)
            for step in steps:
                stem = self.apply_step(stem, step, path, counter)
            new_name = f"{stem}{ext}"

            conflict = new_name in seen
            seen.add(new_name)
            previews.append(RenamePreview(
                original_path=str(path),
                original_name=path.name,
                new_name=new_name,
                has_conflict=conflict,
                conflict_message="Duplicate name in this batch" if conflict else None,
            ))
        return previews

    def execute(self, paths: Sequence[Path], steps: Sequence[RenameStep]) -> RenameResult:
        result = RenameResult()
        pairs = []
        for p in self.preview(paths, steps):
            if p.has_conflict:
                result.failed_count += 1
                result.errors.append(f"Skip {p.original_name}: {p.conflict_message}")
                continue

            original = Path(p.original_path)
            new_path = original.with_name(p.new_name)
            if p.new_name == p.original_name:
                continue
            if not p.new_name or os.sep in p.new_name:
                result.failed_count += 1
                result.errors.append(f"Invalid name for {p.original_name}: {p.new_name!r}")
                continue
            if new_path.exists():
                result.failed_count += 1
                result.errors.append(f"File already exists: {p.new_name}")
                continue

            try:
                os.rename(original, new_path)
            except OSError as e:
                logging.error(f"Failed to rename {original}: {e}")
                result.failed_count += 1
                result.errors.append(f"Failed to rename {p.original_name}: {e}")
                continue
            pairs.append((str(original), str(new_path)))
            result.renamed_count += 1

        if result.renamed_count > 0 and self.ledger is not None:
            result.history_id = self.ledger.record(
                "rename", f"Renamed {result.renamed_count} files", BatchPayload(pairs=tuple(pairs))
            )
        logging.info(f"Batch rename: {result.renamed_count} renamed, {result.failed_count} failed")
        return result
