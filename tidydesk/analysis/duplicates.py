"""
Folder analysis: duplicates, empty folders, large files, size tree, stats.
"""
import logging
import os
from collections import OrderedDict, defaultdict
from pathlib import Path
from typing import Dict, List, Optional

from tqdm import tqdm

from ..classifier import Classifier
from ..exceptions import FileHashError, TreeBuildError
from ..formatting import MB
from ..models import CategoryStats, DuplicateGroup, FileRecord, FolderStats, FolderTreeNode
from ..scanning.filesystem import FileInventory, build_record, iter_entries, require_directory
from ..scanning.hasher import FileHasher


class FolderAnalyzer:
    def __init__(self, hasher: Optional[FileHasher] = None, classifier: Optional[Classifier] = None):
        self.hasher = hasher or FileHasher()
        self.inventory = FileInventory(classifier)

    def find_duplicates(self, root: Path) -> List[DuplicateGroup]:
        """
        1. Bucket every non-empty file by exact size; singleton buckets are dropped.
        2. Fingerprint the remaining files and group by fingerprint.
        3. Keep groups of two or more, most wasted space first.
        """
        root = require_directory(root)
        self.hasher.clear_cache()

        # 1. Size buckets (insertion order kept for stable ties)
        by_size: Dict[int, List[FileRecord]] = OrderedDict()
        for rec in self.inventory.iter_files(root):
            if rec.size > 0:
                by_size.setdefault(rec.size, []).append(rec)

        candidates = [rec for group in by_size.values() if len(group) > 1 for rec in group]
        logging.info(f"Hashing {len(candidates)} size-matched files under {root}")

        # 2. Fingerprint groups
        by_hash: Dict[str, DuplicateGroup] = OrderedDict()
        for rec in tqdm(candidates, desc="Hashing", disable=None):
            try:
                fp = self.hasher.fingerprint(Path(rec.path))
            except FileHashError as e:
                logging.warning(f"Skipping {rec.path}: {e}")
                continue
            key = f"{fp.hex}:{fp.size}"
            if key not in by_hash:
                by_hash[key] = DuplicateGroup(fingerprint=fp.hex, size=fp.size)
            by_hash[key].files.append(rec)

        # 3. Prune and rank (sort is stable)
        groups = [g for g in by_hash.values() if len(g.files) > 1]
        groups.sort(key=lambda g: g.wasted_space, reverse=True)
        logging.info(f"Found {len(groups)} duplicate groups")
        return groups

    def find_empty_folders(self, root: Path) -> List[str]:
        """Directories (root included) whose listing is empty."""
        root = require_directory(root)
        empty = []
        for folder in [root] + list(iter_entries(root, include_dirs=True)):
            if not folder.is_dir() or folder.is_symlink():
                continue
            try:
                with os.scandir(folder) as it:
                    if next(it, None) is None:
                        empty.append(str(folder))
            except OSError as e:
                logging.debug(f"Cannot read {folder}: {e}")
        return empty

    def find_large_files(self, root: Path, threshold_mb: int) -> List[FileRecord]:
        root = require_directory(root)
        threshold = threshold_mb * MB
        large = [rec for rec in self.inventory.iter_files(root) if rec.size >= threshold]
        large.sort(key=lambda r: r.size, reverse=True)
        return large

    def get_folder_tree(self, root: Path, max_depth: int) -> FolderTreeNode:
        """
        One node per directory down to max_depth (root is depth 0). Sizes
        and file counts aggregate bottom-up; directories deeper than
        max_depth are left out entirely, contents included.
        """
        root = Path(root)
        if not root.is_dir():
            raise TreeBuildError(f"Not a directory: {root}", path=root, operation="tree")
        return self._build_node(root, 0, max_depth)

    def _build_node(self, path: Path, depth: int, max_depth: int) -> FolderTreeNode:
        node = FolderTreeNode(path=str(path), name=path.name, size=0, file_count=0)
        try:
            with os.scandir(path) as it:
                entries = list(it)
        except OSError as e:
            logging.debug(f"Cannot read {path}: {e}")
            entries = []

        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    if depth + 1 > max_depth:
                        continue
                    child = self._build_node(Path(entry.path), depth + 1, max_depth)
                    node.size += child.size
                    node.file_count += child.file_count
                    node.children.append(child)
                else:
                    node.size += entry.stat().st_size
                    node.file_count += 1
            except OSError as e:
                logging.debug(f"Skipping {entry.path}: {e}")

        node.children.sort(key=lambda c: c.size, reverse=True)
        return node

    def analyze_folder(self, root: Path) -> FolderStats:
        root = require_directory(root)
        stats = FolderStats(path=str(root), total_size=0, file_count=0, folder_count=0, largest_file=None)
        breakdown = defaultdict(CategoryStats)

        for path in iter_entries(root, include_dirs=True):
            if path.is_dir() and not path.is_symlink():
                stats.folder_count += 1
                continue
            try:
                rec = build_record(path, self.inventory.classifier)
            except OSError as e:
                logging.debug(f"Skipping {path}: {e}")
                continue
            stats.total_size += rec.size
            stats.file_count += 1
            if stats.largest_file is None or rec.size > stats.largest_file.size:
                stats.largest_file = rec
            cat = breakdown[rec.category.value]
            cat.count += 1
            cat.total_size += rec.size

        stats.category_breakdown = dict(breakdown)
        return stats
