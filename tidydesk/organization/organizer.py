"""
One-click category sort: every top-level file goes to root/<category folder>.
"""
import logging
import os
from collections import OrderedDict
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from ..classifier import Classifier, category_label
from ..exceptions import FileOperationError
from ..formatting import date_folder
from ..history import BatchPayload, HistoryLedger
from ..models import FileRecord, OrganizeOptions, OrganizePreview, OrganizeResult
from ..scanning.filesystem import build_record, iter_entries, require_directory
from .mover import move_path, numbered_path, remove_path, same_entry


class CategoryOrganizer:
    def __init__(self, classifier: Optional[Classifier] = None, ledger: Optional[HistoryLedger] = None):
        self.classifier = classifier or Classifier()
        self.ledger = ledger

    def _files(self, root: Path) -> List[FileRecord]:
        records = []
        for path in iter_entries(root, recursive=False, skip_hidden=True):
            try:
                records.append(build_record(path, self.classifier))
            except OSError as e:
                logging.debug(f"Skipping {path}: {e}")
        records.sort(key=lambda r: r.name.lower())
        return records

    def preview(self, root: Path) -> List[OrganizePreview]:
        """Groups by destination folder, largest group first."""
        root = require_directory(Path(os.path.abspath(root)))
        groups = OrderedDict()
        for file in self._files(root):
            folder = root / self.classifier.target_folder(file.extension)
            key = (file.category, str(folder))
            if key not in groups:
                groups[key] = OrganizePreview(
                    category=file.category,
                    category_label=category_label(file.category),
                    destination_folder=str(folder),
                )
            groups[key].files.append(file)

        previews = list(groups.values())
        previews.sort(key=lambda p: p.file_count, reverse=True)
        return previews

    def execute(self, root: Path, options: Optional[OrganizeOptions] = None) -> OrganizeResult:
        options = options or OrganizeOptions()
        root = require_directory(Path(os.path.abspath(root)))
        result = OrganizeResult()

        files = self._files(root)
        if not files:
            logging.info(f"Nothing to organize in {root}")
            return result

        logging.info(f"Sorting {len(files)} files in {root} by category...")
        pairs = []
        for file in tqdm(files, desc="Organizing", disable=None):
            source = Path(file.path)
            folder = root / self.classifier.target_folder(file.extension)
            if options.create_date_subfolders:
                folder = folder / date_folder(file.modified, options.date_format)

            try:
                folder.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logging.error(f"Cannot create {folder}: {e}")
                result.errors.append(f"Cannot create folder {folder}: {e}")
                continue

            dest = folder / file.name
            if same_entry(source, dest):
                result.files_skipped += 1
                continue
            if dest.exists():
                if options.handle_duplicates == "rename":
                    dest = numbered_path(dest)
                elif options.handle_duplicates == "overwrite":
                    try:
                        remove_path(dest)
                    except OSError as e:
                        result.errors.append(f"{file.name}: cannot replace {dest}: {e}")
                        continue
                else:
                    # skip, and anything unrecognized
                    result.files_skipped += 1
                    continue

            try:
                move_path(source, dest)
            except FileOperationError as e:
                logging.error(f"Failed to move {file.name}: {e}")
                result.errors.append(f"{file.name}: {e}")
                continue
            pairs.append((str(source), str(dest)))
            result.files_moved += 1

        if self.ledger is not None:
            result.history_id = self.ledger.record(
                "organize", f"Sorted {result.files_moved} files by category in {root.name}",
                BatchPayload(pairs=tuple(pairs)),
            )
        logging.info(
            f"Category sort complete: {result.files_moved} moved, {result.files_skipped} skipped, "
            f"{len(result.errors)} error(s)"
        )
        return result
