"""
Whole-tree snapshots of a folder under a backup root.

A snapshot is `<backup_root>/<folder name>_<YYYYmmdd_HHMMSS>/` holding a copy
of the tree plus a small JSON manifest naming the source.
"""
import json
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from .. import config
from ..exceptions import EntryNotFoundError, FileOperationError, PartialFailureError
from ..formatting import format_timestamp
from ..models import BackupInfo, BackupResult
from ..scanning.filesystem import iter_entries, require_directory
from .mover import move_path, unique_path


def _read_manifest(backup_path: Path) -> dict:
    manifest = backup_path / config.BACKUP_MANIFEST
    try:
        with manifest.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, ValueError):
        return {}


def _snapshot_files(backup_path: Path):
    for path in iter_entries(backup_path):
        if path.parent == backup_path and path.name == config.BACKUP_MANIFEST:
            continue
        yield path


class BackupManager:
    def __init__(self, backup_root: Path):
        self.backup_root = Path(backup_root)

    def backup_directory(self, source: Path) -> BackupResult:
        source = require_directory(Path(os.path.abspath(source)))
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        dest = unique_path(self.backup_root / f"{source.name or 'root'}_{stamp}")

        try:
            dest.mkdir(parents=True)
        except OSError as e:
            raise FileOperationError(f"Cannot create backup folder {dest}: {e}", path=dest, operation="backup") from e

        logging.info(f"Backing up {source} -> {dest}")
        # The snapshot may live inside the tree it copies
        entries = [p for p in iter_entries(source, include_dirs=True) if p != dest and dest not in p.parents]
        files_count, total_size, errors = 0, 0, []
        for path in tqdm(entries, desc="Backing up", disable=None):
            target = dest / path.relative_to(source)
            try:
                if path.is_dir() and not path.is_symlink():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(path, target)
                files_count += 1
                total_size += target.stat().st_size
            except OSError as e:
                logging.error(f"Backup failed for {path}: {e}")
                errors.append(f"{path}: {e}")

        manifest = {
            "source": str(source),
            "created_at": datetime.now().isoformat(timespec="seconds"),
            "file_count": files_count,
            "total_size": total_size,
        }
        try:
            with (dest / config.BACKUP_MANIFEST).open("w", encoding="utf-8") as f:
                json.dump(manifest, f, ensure_ascii=False, indent=2)
        except OSError as e:
            errors.append(f"manifest: {e}")

        if errors:
            raise PartialFailureError(
                f"Backup of {source} incomplete: {len(errors)} item(s) failed",
                errors=errors, succeeded=files_count, path=dest, operation="backup",
            )
        logging.info(f"Backup complete: {files_count} files")
        return BackupResult(backup_path=str(dest), files_count=files_count, total_size=total_size)

    def list_backups(self) -> List[BackupInfo]:
        """Snapshots under the backup root, newest first."""
        if not self.backup_root.is_dir():
            return []

        found = []
        for entry in self.backup_root.iterdir():
            if not entry.is_dir():
                continue
            size, count = 0, 0
            for path in _snapshot_files(entry):
                try:
                    size += path.stat().st_size
                    count += 1
                except OSError:
                    continue
            manifest = _read_manifest(entry)
            try:
                created = datetime.fromisoformat(manifest["created_at"]).timestamp()
            except (KeyError, TypeError, ValueError):
                created = entry.stat().st_mtime
            found.append((created, BackupInfo(
                name=entry.name,
                path=str(entry),
                size=size,
                file_count=count,
                created_at=format_timestamp(created),
            )))

        found.sort(key=lambda pair: pair[0], reverse=True)
        return [info for _, info in found]

    def restore_backup(self, backup_path: Path, destination: Optional[Path] = None) -> int:
        """
        Copies the snapshot back. Files already at a destination path are
        renamed out of the way first, never overwritten. Returns the count
        of restored files.
        """
        backup_path = require_directory(Path(os.path.abspath(backup_path)))
        if destination is None:
            source = _read_manifest(backup_path).get("source")
            if not source:
                raise EntryNotFoundError(
                    f"Backup {backup_path} has no manifest; pass a destination",
                    path=backup_path, operation="restore",
                )
            destination = Path(source)
        destination = Path(os.path.abspath(destination))

        logging.info(f"Restoring {backup_path} -> {destination}")
        restored, errors = 0, []
        for path in tqdm(list(_snapshot_files(backup_path)), desc="Restoring", disable=None):
            target = destination / path.relative_to(backup_path)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                if target.exists() or target.is_symlink():
                    stem, ext = os.path.splitext(target.name)
                    aside = unique_path(target.with_name(f"{stem}_before_restore{ext}"))
                    move_path(target, aside)
                    logging.info(f"Moved existing {target} aside to {aside.name}")
                shutil.copy2(path, target)
                restored += 1
            except (OSError, FileOperationError) as e:
                logging.error(f"Restore failed for {target}: {e}")
                errors.append(f"{target}: {e}")

        if errors:
            raise PartialFailureError(
                f"Restore of {backup_path} incomplete: {len(errors)} item(s) failed",
                errors=errors, succeeded=restored, path=destination, operation="restore",
            )
        return restored

    def delete_backup(self, backup_path: Path):
        """Deletes a snapshot; only paths strictly inside the backup root are accepted."""
        root = Path(os.path.realpath(self.backup_root))
        target = Path(os.path.realpath(backup_path))
        if root not in target.parents:
            raise FileOperationError(
                f"Refusing to delete {backup_path}: not inside backup folder {self.backup_root}",
                path=backup_path, operation="delete_backup",
            )
        if not target.exists():
            raise EntryNotFoundError(f"Backup does not exist: {backup_path}", path=backup_path, operation="delete_backup")
        try:
            if target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as e:
            raise FileOperationError(f"Cannot delete backup {backup_path}: {e}", path=backup_path, operation="delete_backup") from e
        logging.info(f"Deleted backup {target}")
