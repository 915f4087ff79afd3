import logging
import os
import stat
import sys
from pathlib import Path
from typing import Iterator, List, Optional

from ..classifier import Classifier, classify
from ..exceptions import EntryNotFoundError, NotADirError
from ..models import FileCategory, FileRecord


def is_hidden(path: Path, st: Optional[os.stat_result] = None) -> bool:
    """Hidden attribute bit on Windows, dot-prefix elsewhere."""
    if sys.platform == "win32":
        try:
            st = st or path.stat()
        except OSError:
            return False
        return bool(getattr(st, "st_file_attributes", 0) & stat.FILE_ATTRIBUTE_HIDDEN)
    return path.name.startswith(".")


def creation_time(st: os.stat_result) -> float:
    # st_birthtime where the platform has it; st_ctime is creation time on Windows
    return getattr(st, "st_birthtime", st.st_ctime)


def extension_of(path: Path) -> str:
    suffix = path.suffix
    return suffix.lower() if len(suffix) > 1 else ""


def build_record(path: Path, classifier: Optional[Classifier] = None) -> FileRecord:
    """Stats `path` and returns its FileRecord. Raises OSError on unreadable metadata."""
    path = Path(os.path.abspath(path))
    st = path.stat()
    ext = extension_of(path)
    is_dir = stat.S_ISDIR(st.st_mode)
    if is_dir:
        category = FileCategory.OTHERS
    elif classifier is not None:
        category = classifier.classify(ext)
    else:
        category = classify(ext)

    return FileRecord(
        path=str(path),
        name=path.name,
        extension=ext,
        size=0 if is_dir else st.st_size,
        created=creation_time(st),
        modified=st.st_mtime,
        is_directory=is_dir,
        is_hidden=is_hidden(path, st),
        category=category,
    )


def require_directory(root: Path) -> Path:
    root = Path(root)
    if not root.exists():
        raise EntryNotFoundError(f"Directory does not exist: {root}", path=root)
    if not root.is_dir():
        raise NotADirError(f"Path is not a directory: {root}", path=root)
    return root


def iter_entries(root: Path,
                 recursive: bool = True,
                 include_dirs: bool = False,
                 skip_hidden: bool = False) -> Iterator[Path]:
    """
    Depth-first walker using os.scandir.
    Unreadable directories are logged and skipped; symlinked directories are not followed.
    """
    stack = [Path(root)]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as e:
            logging.warning(f"Cannot read directory {current}: {e}")
            continue

        # Sort for stable traversal order
        entries.sort(key=lambda e: e.name.lower())

        dirs = []
        for e in entries:
            p = Path(e.path)
            if skip_hidden and is_hidden(p):
                continue
            try:
                entry_is_dir = e.is_dir(follow_symlinks=False)
                entry_is_file = e.is_file()
            except OSError:
                continue
            if entry_is_dir:
                dirs.append(p)
                if include_dirs:
                    yield p
            elif entry_is_file:
                yield p

        if recursive:
            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)


class FileInventory:
    def __init__(self, classifier: Optional[Classifier] = None):
        self.classifier = classifier

    def list(self, root: Path, recursive: bool = False, include_hidden: bool = False) -> List[FileRecord]:
        """
        Records for every entry (files and directories) under root, sorted
        case-insensitively by name. Entries whose metadata cannot be read are
        skipped so one bad entry does not blank the listing.
        """
        root = require_directory(root)

        records = []
        for path in iter_entries(root, recursive=recursive, include_dirs=True,
                                 skip_hidden=not include_hidden):
            try:
                records.append(build_record(path, self.classifier))
            except OSError as e:
                logging.debug(f"Skipping {path}: {e}")

        records.sort(key=lambda r: r.name.lower())
        return records

    def iter_files(self, root: Path, recursive: bool = True, include_hidden: bool = True) -> Iterator[FileRecord]:
        """Regular files only, unsorted, for the analysis passes."""
        for path in iter_entries(root, recursive=recursive, skip_hidden=not include_hidden):
            try:
                yield build_record(path, self.classifier)
            except OSError as e:
                logging.debug(f"Skipping {path}: {e}")


def list_directory(root: Path, recursive: bool = False, include_hidden: bool = False) -> List[FileRecord]:
    return FileInventory().list(root, recursive=recursive, include_hidden=include_hidden)
