"""
Direct file operations. Every successful mutation except folder creation
appends one history entry carrying enough data to reverse it.
"""
import logging
import os
from enum import Enum
from pathlib import Path

from ..exceptions import AlreadyExistsError, EntryNotFoundError, FileOperationError
from ..history import CopyPayload, DeletePayload, HistoryLedger, MovePayload, RenamePayload
from .mover import TrashBin, copy_path, move_path, remove_path, same_entry, unique_path


class OverwriteStrategy(str, Enum):
    OVERWRITE = "overwrite"
    RENAME = "rename"
    SKIP = "skip"


def _exists(path: Path) -> bool:
    return path.exists() or path.is_symlink()


class FileOperations:
    def __init__(self, ledger: HistoryLedger, trash: TrashBin = None):
        self.ledger = ledger
        self.trash = trash or ledger.trash

    def _resolve_destination(self, source: Path, dest: Path, strategy: OverwriteStrategy, operation: str):
        """
        Returns (destination, proceed). A directory destination means
        'same name inside it'. Skip returns proceed=False, and so does a
        destination that is the source itself.
        """
        if not _exists(source):
            raise EntryNotFoundError(f"Source file does not exist: {source}", path=source, operation=operation)

        if dest.is_dir() and not same_entry(source, dest):
            dest = dest / source.name

        if same_entry(source, dest):
            logging.debug(f"{operation}: {source} is already at {dest}, nothing to do")
            return source, False

        if _exists(dest):
            strategy = OverwriteStrategy(strategy)
            if strategy == OverwriteStrategy.SKIP:
                logging.debug(f"{operation}: {dest} exists, skipping")
                return dest, False
            if strategy == OverwriteStrategy.RENAME:
                dest = unique_path(dest)
            else:
                try:
                    remove_path(dest)
                except OSError as e:
                    raise FileOperationError(f"Cannot replace {dest}: {e}", path=dest, operation=operation) from e

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileOperationError(f"Cannot create {dest.parent}: {e}", path=dest, operation=operation) from e
        return dest, True

    def move(self, source: Path, dest: Path, strategy: OverwriteStrategy = OverwriteStrategy.RENAME) -> Path:
        source = Path(os.path.abspath(source))
        dest, proceed = self._resolve_destination(source, Path(os.path.abspath(dest)), strategy, "move")
        if not proceed:
            return dest

        move_path(source, dest)
        self.ledger.record("move", f"Moved {source.name}", MovePayload(str(source), str(dest)))
        logging.info(f"Moved {source} -> {dest}")
        return dest

    def copy(self, source: Path, dest: Path, strategy: OverwriteStrategy = OverwriteStrategy.RENAME) -> Path:
        source = Path(os.path.abspath(source))
        dest, proceed = self._resolve_destination(source, Path(os.path.abspath(dest)), strategy, "copy")
        if not proceed:
            return dest

        try:
            copy_path(source, dest)
        except OSError as e:
            raise FileOperationError(f"Cannot copy {source} -> {dest}: {e}", path=source, operation="copy") from e
        self.ledger.record("copy", f"Copied {source.name}", CopyPayload(str(dest)))
        logging.info(f"Copied {source} -> {dest}")
        return dest

    def rename(self, path: Path, new_name: str) -> Path:
        path = Path(os.path.abspath(path))
        if not _exists(path):
            raise EntryNotFoundError(f"File does not exist: {path}", path=path, operation="rename")
        if not new_name or os.sep in new_name or (os.altsep and os.altsep in new_name):
            raise FileOperationError(f"Invalid file name: {new_name!r}", path=path, operation="rename")

        new_path = path.parent / new_name
        if new_path == path:
            return path
        # Case-only renames on case-insensitive file systems report the target as existing
        if _exists(new_path) and not same_entry(path, new_path):
            raise AlreadyExistsError(f"File already exists: {new_path}", path=new_path, operation="rename")

        try:
            os.rename(path, new_path)
        except OSError as e:
            raise FileOperationError(f"Cannot rename {path}: {e}", path=path, operation="rename") from e
        self.ledger.record("rename", f"Renamed {path.name} -> {new_name}", RenamePayload(str(path), str(new_path)))
        logging.info(f"Renamed {path} -> {new_path}")
        return new_path

    def delete(self, path: Path, to_trash: bool = True):
        path = Path(os.path.abspath(path))
        if not _exists(path):
            raise EntryNotFoundError(f"File does not exist: {path}", path=path, operation="delete")

        if to_trash:
            self.trash.send(path)
        else:
            try:
                remove_path(path)
            except OSError as e:
                raise FileOperationError(f"Cannot delete {path}: {e}", path=path, operation="delete") from e
        self.ledger.record("delete", f"Deleted {path.name}", DeletePayload(str(path), to_trash))
        logging.info(f"Deleted {path} ({'trash' if to_trash else 'permanent'})")

    def create_folder(self, path: Path) -> Path:
        path = Path(os.path.abspath(path))
        if _exists(path):
            raise AlreadyExistsError(f"Folder already exists: {path}", path=path, operation="create_folder")
        try:
            path.mkdir(parents=True)
        except OSError as e:
            raise FileOperationError(f"Cannot create folder {path}: {e}", path=path, operation="create_folder") from e
        logging.info(f"Created folder {path}")
        return path
