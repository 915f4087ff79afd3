"""
History ledger: durable log of executed mutations and their reversal.

Each entry stores a JSON replay payload. Payloads are decoded once into one
of the dataclasses below and reversal dispatches on the payload type.
"""
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from .database.db import DBManager
from .database.ops import DBOperations, HistoryRow
from .exceptions import (
    AlreadyExistsError, AlreadyUndoneError, CannotUndoError, EntryNotFoundError, FileOperationError,
)
from .models import UndoResult
from .organization.mover import TrashBin, move_path, remove_path


@dataclass(frozen=True)
class MovePayload:
    original_path: str
    new_path: str


@dataclass(frozen=True)
class CopyPayload:
    copied_path: str


@dataclass(frozen=True)
class RenamePayload:
    original_path: str
    new_path: str


@dataclass(frozen=True)
class DeletePayload:
    deleted_path: str
    to_trash: bool


@dataclass(frozen=True)
class BatchPayload:
    """
    Multi-file run. `pairs` are (original, new) moves or renames in the order
    they completed; `copies` are files created by copy actions; `trashed`
    are files sent to the trash.
    """
    pairs: Tuple[Tuple[str, str], ...] = ()
    copies: Tuple[str, ...] = ()
    trashed: Tuple[str, ...] = ()

    @property
    def files_affected(self) -> int:
        return len(self.pairs) + len(self.copies) + len(self.trashed)


Payload = Union[MovePayload, CopyPayload, RenamePayload, DeletePayload, BatchPayload]


def encode_payload(payload: Payload) -> str:
    if isinstance(payload, MovePayload):
        data = {"action": "move", "original_path": payload.original_path, "new_path": payload.new_path}
    elif isinstance(payload, CopyPayload):
        data = {"action": "copy", "copied_path": payload.copied_path}
    elif isinstance(payload, RenamePayload):
        data = {
            "action": "rename",
            "original_path": payload.original_path,
            "new_path": payload.new_path,
            "old_name": Path(payload.original_path).name,
            "new_name": Path(payload.new_path).name,
        }
    elif isinstance(payload, DeletePayload):
        data = {"action": "delete", "deleted_path": payload.deleted_path, "to_trash": payload.to_trash}
    elif isinstance(payload, BatchPayload):
        data = {
            "action": "batch",
            "pairs": [list(p) for p in payload.pairs],
            "copies": list(payload.copies),
            "trashed": list(payload.trashed),
        }
    else:
        raise TypeError(f"Unknown payload type: {type(payload).__name__}")
    return json.dumps(data, ensure_ascii=False)


def _pairs(items) -> Tuple[Tuple[str, str], ...]:
    pairs = []
    for item in items or []:
        if isinstance(item, (list, tuple)) and len(item) >= 2 and item[0] and item[1]:
            pairs.append((str(item[0]), str(item[1])))
    return tuple(pairs)


def decode_payload(details: Optional[str]) -> Payload:
    """
    Parses a stored payload. A bare JSON array of [original, new] pairs is
    read as a batch. Raises ValueError for anything unrecognized.
    """
    data = json.loads(details or "null")

    if isinstance(data, list):
        return BatchPayload(pairs=_pairs(data))
    if not isinstance(data, dict):
        raise ValueError("replay data is not an object")

    action = data.get("action")
    try:
        if action == "move":
            return MovePayload(data["original_path"], data["new_path"])
        if action == "copy":
            return CopyPayload(data["copied_path"])
        if action == "rename":
            return RenamePayload(data["original_path"], data["new_path"])
        if action == "delete":
            return DeletePayload(data["deleted_path"], bool(data.get("to_trash", False)))
    except KeyError as e:
        raise ValueError(f"{action} replay data is missing {e}") from e
    if action == "batch":
        return BatchPayload(
            pairs=_pairs(data.get("pairs")),
            copies=tuple(str(p) for p in data.get("copies") or []),
            trashed=tuple(str(p) for p in data.get("trashed") or []),
        )
    raise ValueError(f"unknown action {action!r}")


@dataclass
class HistoryEntry:
    id: int
    operation_type: str
    description: str
    details: Optional[str]
    files_affected: int = 1
    is_undone: bool = False
    created_at: str = ""

    @classmethod
    def from_row(cls, row: HistoryRow) -> "HistoryEntry":
        hid, op, desc, details, affected, undone, created = row
        return cls(
            id=hid, operation_type=op, description=desc, details=details,
            files_affected=affected if affected is not None else 1,
            is_undone=bool(undone), created_at=created or "",
        )

    @property
    def payload(self) -> Payload:
        return decode_payload(self.details)


def _exists(path: Path) -> bool:
    return path.exists() or path.is_symlink()


def cleanup_empty_folders(new_paths: Sequence[str], keep: Sequence[str] = ()):
    """
    Removes each distinct parent of `new_paths` if it is now empty, then its
    parent too (one extra level). Folders in `keep` (the places files were
    restored to) are never removed. Failures are expected and ignored.
    """
    kept = {os.path.abspath(k) for k in keep}
    folders = []
    for p in new_paths:
        parent = Path(p).parent
        if parent not in folders:
            folders.append(parent)

    for folder in folders:
        for candidate in (folder, folder.parent):
            if os.path.abspath(candidate) in kept:
                continue
            try:
                candidate.rmdir()
                logging.debug(f"Removed empty folder {candidate}")
            except OSError:
                pass


class HistoryLedger:
    def __init__(self, db: DBManager, trash: Optional[TrashBin] = None):
        self.db = db
        self.trash = trash or TrashBin()

    def record(self, operation_type: str, description: str, payload: Payload,
               files_affected: Optional[int] = None) -> int:
        if files_affected is None:
            files_affected = payload.files_affected if isinstance(payload, BatchPayload) else 1
        with self.db as conn:
            history_id = DBOperations(conn).add_history(
                operation_type, description, encode_payload(payload), files_affected
            )
        logging.debug(f"History #{history_id}: {description}")
        return history_id

    def get(self, history_id: int) -> HistoryEntry:
        with self.db as conn:
            row = DBOperations(conn).get_history(history_id)
        if row is None:
            raise EntryNotFoundError(f"History entry {history_id} not found", operation="history")
        return HistoryEntry.from_row(row)

    def list(self, limit: int = 50, offset: int = 0) -> List[HistoryEntry]:
        with self.db as conn:
            rows = DBOperations(conn).list_history(limit, offset)
        return [HistoryEntry.from_row(r) for r in rows]

    def clear(self) -> int:
        with self.db as conn:
            removed = DBOperations(conn).clear_history()
        logging.info(f"Cleared {removed} history entries")
        return removed

    def mark_undone(self, history_id: int):
        with self.db as conn:
            ops = DBOperations(conn)
            if ops.get_history(history_id) is None:
                raise EntryNotFoundError(f"History entry {history_id} not found", operation="history")
            if not ops.mark_history_undone(history_id):
                raise AlreadyUndoneError(f"History entry {history_id} has already been undone", operation="undo")

    def undo(self, history_id: int) -> UndoResult:
        """
        Reverses the entry. Single operations raise on failure and stay
        un-undone. Batches collect per-item errors in the result and are
        marked undone once every item has been attempted.
        """
        entry = self.get(history_id)
        if entry.is_undone:
            raise AlreadyUndoneError(f"History entry {history_id} has already been undone", operation="undo")

        try:
            payload = entry.payload
        except ValueError as e:
            raise CannotUndoError(f"History entry {history_id} has no usable replay data: {e}", operation="undo") from e

        logging.info(f"Undoing #{history_id}: {entry.description}")
        if isinstance(payload, BatchPayload):
            result = self._undo_batch(history_id, payload)
        else:
            restored = self._undo_single(payload)
            result = UndoResult(history_id=history_id, restored_count=restored)

        self.mark_undone(history_id)
        return result

    def _undo_single(self, payload: Payload) -> int:
        if isinstance(payload, (MovePayload, RenamePayload)):
            operation = "undo_move" if isinstance(payload, MovePayload) else "undo_rename"
            return self._move_back(Path(payload.new_path), Path(payload.original_path), operation)

        if isinstance(payload, CopyPayload):
            copied = Path(payload.copied_path)
            if not _exists(copied):
                return 0
            try:
                remove_path(copied)
            except OSError as e:
                raise FileOperationError(f"Cannot remove copy {copied}: {e}", path=copied, operation="undo_copy") from e
            return 1

        if isinstance(payload, DeletePayload):
            if not payload.to_trash:
                raise CannotUndoError(
                    f"Cannot undo permanent delete of {payload.deleted_path}",
                    path=payload.deleted_path, operation="undo_delete",
                )
            self.trash.restore(Path(payload.deleted_path))
            return 1

        raise CannotUndoError(f"Unknown replay payload {type(payload).__name__}", operation="undo")

    @staticmethod
    def _move_back(current: Path, original: Path, operation: str) -> int:
        # Already moved or deleted outside the app
        if not _exists(current):
            logging.debug(f"{current} no longer exists; nothing to restore")
            return 0
        if _exists(original):
            raise AlreadyExistsError(f"File already exists: {original}", path=original, operation=operation)
        try:
            original.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileOperationError(f"Cannot create {original.parent}: {e}", path=original, operation=operation) from e
        move_path(current, original)
        return 1

    def _undo_batch(self, history_id: int, payload: BatchPayload) -> UndoResult:
        result = UndoResult(history_id=history_id)

        # Reverse order so chained moves unwind correctly
        for original, new in reversed(payload.pairs):
            try:
                result.restored_count += self._move_back(Path(new), Path(original), "undo_batch")
            except (AlreadyExistsError, FileOperationError) as e:
                logging.error(f"Undo failed for {new}: {e}")
                result.errors.append(f"{new}: {e}")

        for copied in payload.copies:
            path = Path(copied)
            if not _exists(path):
                continue
            try:
                remove_path(path)
                result.restored_count += 1
            except OSError as e:
                logging.error(f"Undo failed for {copied}: {e}")
                result.errors.append(f"{copied}: {e}")

        for trashed in payload.trashed:
            try:
                self.trash.restore(Path(trashed))
                result.restored_count += 1
            except (CannotUndoError, AlreadyExistsError, FileOperationError) as e:
                logging.error(f"Undo failed for {trashed}: {e}")
                result.errors.append(f"{trashed}: {e}")

        cleanup_empty_folders(
            [new for _, new in payload.pairs] + list(payload.copies),
            keep=[str(Path(original).parent) for original, _ in payload.pairs],
        )

        logging.info(
            f"Undo #{history_id}: restored {result.restored_count}, {len(result.errors)} error(s)"
        )
        return result
