"""
Low-level file system primitives shared by the executor, the rule engine,
the history ledger and the backup manager.
"""
import configparser
import logging
import os
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple
from urllib.parse import unquote

from send2trash import send2trash

from ..exceptions import AlreadyExistsError, CannotUndoError, EntryNotFoundError, FileOperationError


def unique_path(path: Path) -> Path:
    """`name.ext` -> `name_1.ext`, `name_2.ext`, ... until free."""
    path = Path(path)
    if not path.exists():
        return path

    stem, ext = _split_name(path)
    counter = 1
    while True:
        candidate = path.parent / f"{stem}_{counter}{ext}"
        if not candidate.exists():
            return candidate
        counter += 1


def numbered_path(path: Path) -> Path:
    """`name.ext` -> `name (1).ext`, `name (2).ext`, ... until free."""
    path = Path(path)
    if not path.exists():
        return path

    stem, ext = _split_name(path)
    counter = 1
    while True:
        candidate = path.parent / f"{stem} ({counter}){ext}"
        if not candidate.exists():
            return candidate
        counter += 1


def _split_name(path: Path) -> Tuple[str, str]:
    suffix = path.suffix
    if len(suffix) > 1:
        return path.name[:-len(suffix)], suffix
    return path.name, ""


def same_entry(a: Path, b: Path) -> bool:
    """True when both paths name one file system entry (hard links and case aliases included)."""
    if Path(a) == Path(b):
        return True
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False


def remove_path(path: Path):
    """Deletes a file, symlink or whole directory tree. Raises OSError."""
    path = Path(path)
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def copy_path(src: Path, dest: Path):
    """Copies a file (with metadata) or a whole directory tree. Raises OSError."""
    src, dest = Path(src), Path(dest)
    if src.is_dir() and not src.is_symlink():
        shutil.copytree(src, dest)
    else:
        shutil.copy2(src, dest)


def _discard(path: Path):
    try:
        if path.exists() or path.is_symlink():
            remove_path(path)
    except OSError as e:
        logging.warning(f"Could not remove partial copy {path}: {e}")


def move_path(src: Path, dest: Path):
    """
    Moves src to dest. An atomic rename is tried first; when it fails
    (typically across devices) the entry is copied and the source removed.

    On failure exactly one of the two locations holds the data: a failed
    copy is discarded and the original left in place.
    """
    src, dest = Path(src), Path(dest)
    try:
        os.rename(src, dest)
        return
    except OSError as e:
        rename_err = e
        logging.debug(f"Rename {src} -> {dest} failed ({e}); falling back to copy")

    if not (src.exists() or src.is_symlink()):
        raise FileOperationError(f"Cannot move {src}: {rename_err}", path=src, operation="move") from rename_err

    dest_existed = dest.exists()
    try:
        copy_path(src, dest)
    except OSError as copy_err:
        if not dest_existed:
            _discard(dest)
        raise FileOperationError(
            f"Cannot move {src} -> {dest}: {rename_err} (copy fallback failed: {copy_err})",
            path=src, operation="move",
        ) from rename_err

    is_tree = src.is_dir() and not src.is_symlink()
    try:
        remove_path(src)
    except OSError as e:
        # A half-removed tree must keep its copy
        if not is_tree:
            _discard(dest)
        raise FileOperationError(
            f"Copied {src} -> {dest} but could not remove the source: {e}",
            path=src, operation="move",
        ) from e


class TrashBin:
    """
    Platform trash. Sending uses send2trash everywhere; restoring is only
    possible on freedesktop systems, where every trashed entry has a
    `.trashinfo` record naming its original location.
    """

    def __init__(self, trash_dirs: Optional[Iterable[Path]] = None):
        # Explicit trash directories (each holding files/ and info/); None means discover
        self._trash_dirs = [Path(d) for d in trash_dirs] if trash_dirs is not None else None

    @property
    def supports_restore(self) -> bool:
        return self._trash_dirs is not None or sys.platform not in ("win32", "darwin")

    def send(self, path: Path):
        path = Path(path)
        if not (path.exists() or path.is_symlink()):
            raise EntryNotFoundError(f"File does not exist: {path}", path=path, operation="trash")
        try:
            send2trash(str(path))
        except OSError as e:
            raise FileOperationError(f"Cannot move {path} to trash: {e}", path=path, operation="trash") from e
        logging.debug(f"Trashed {path}")

    def restore(self, original_path: Path) -> Path:
        """Puts the most recently trashed entry for `original_path` back."""
        original_path = Path(os.path.abspath(original_path))
        if not self.supports_restore:
            raise CannotUndoError(
                f"Restoring from the trash is not supported on this platform: {original_path}",
                path=original_path, operation="restore",
            )

        found = self._find(original_path)
        if found is None:
            raise CannotUndoError(f"No trash entry found for {original_path}", path=original_path, operation="restore")
        info_file, trashed_file = found

        if original_path.exists():
            raise AlreadyExistsError(f"File already exists: {original_path}", path=original_path, operation="restore")

        try:
            original_path.parent.mkdir(parents=True, exist_ok=True)
            move_path(trashed_file, original_path)
            info_file.unlink()
        except OSError as e:
            raise FileOperationError(f"Cannot restore {original_path}: {e}", path=original_path, operation="restore") from e
        logging.info(f"Restored {original_path} from trash")
        return original_path

    def _find(self, original_path: Path) -> Optional[Tuple[Path, Path]]:
        best = None
        for trash_dir, topdir in self._candidate_dirs(original_path):
            info_dir = trash_dir / "info"
            if not info_dir.is_dir():
                continue
            for info_file in info_dir.glob("*.trashinfo"):
                parsed = self._read_info(info_file)
                if parsed is None:
                    continue
                recorded, deleted_at = parsed
                if not os.path.isabs(recorded):
                    recorded = os.path.join(topdir, recorded)
                if Path(os.path.abspath(recorded)) != original_path:
                    continue
                trashed_file = trash_dir / "files" / info_file.name[:-len(".trashinfo")]
                if not (trashed_file.exists() or trashed_file.is_symlink()):
                    continue
                if best is None or deleted_at > best[0]:
                    best = (deleted_at, info_file, trashed_file)
        return (best[1], best[2]) if best else None

    @staticmethod
    def _read_info(info_file: Path) -> Optional[Tuple[str, datetime]]:
        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read(info_file, encoding="utf-8")
            section = parser["Trash Info"]
            recorded = unquote(section["Path"])
            deleted_at = datetime.fromisoformat(section.get("DeletionDate", "1970-01-01T00:00:00"))
        except (configparser.Error, KeyError, ValueError, OSError) as e:
            logging.debug(f"Ignoring unreadable trash record {info_file}: {e}")
            return None
        return recorded, deleted_at

    def _candidate_dirs(self, original_path: Path) -> List[Tuple[Path, Path]]:
        """(trash directory, top directory for relative records) pairs."""
        if self._trash_dirs is not None:
            return [(d, d.parent) for d in self._trash_dirs]

        xdg_data = os.environ.get("XDG_DATA_HOME") or os.path.join(os.path.expanduser("~"), ".local", "share")
        candidates = [(Path(xdg_data) / "Trash", Path("/"))]

        topdir = _mount_point(original_path)
        uid = os.getuid() if hasattr(os, "getuid") else 0
        candidates.append((topdir / ".Trash" / str(uid), topdir))
        candidates.append((topdir / f".Trash-{uid}", topdir))
        return candidates


def _mount_point(path: Path) -> Path:
    path = Path(os.path.abspath(path))
    while not os.path.ismount(path) and path.parent != path:
        path = path.parent
    return path
