"""
Two-tree comparison by relative path and content fingerprint, and merging
one tree into the other.
"""
import logging
import os
import shutil
from pathlib import Path
from typing import Dict, Optional, Tuple

from tqdm import tqdm

from ..classifier import Classifier
from ..exceptions import EntryNotFoundError, FileHashError, FileOperationError
from ..models import (
    CompareEntry, CompareStatus, CompareSummary, FileRecord, MergeOptions, MergeResult, MergeStrategy,
)
from ..scanning.filesystem import FileInventory, require_directory
from ..scanning.hasher import FileHasher
from ..organization.mover import unique_path


class FolderComparer:
    def __init__(self, hasher: Optional[FileHasher] = None, classifier: Optional[Classifier] = None):
        self.hasher = hasher or FileHasher()
        self.inventory = FileInventory(classifier)

    def _index(self, root: Path) -> Dict[str, Tuple[FileRecord, Optional[str]]]:
        """relative posix path -> (record, fingerprint or None when unreadable)"""
        index = {}
        for rec in self.inventory.iter_files(root):
            rel = Path(rec.path).relative_to(root).as_posix()
            try:
                digest = self.hasher.fingerprint(Path(rec.path)).hex
            except FileHashError as e:
                logging.warning(f"Cannot fingerprint {rec.path}: {e}")
                digest = None
            index[rel] = (rec, digest)
        return index

    def compare(self, source: Path, target: Path) -> CompareSummary:
        """
        Full outer join of both trees on relative path. Every file on both
        sides is fingerprinted; an unreadable file never compares identical.
        """
        source = Path(os.path.abspath(source))
        target = Path(os.path.abspath(target))
        if not source.exists():
            raise EntryNotFoundError(f"Source folder does not exist: {source}", path=source, operation="compare")
        if not target.exists():
            raise EntryNotFoundError(f"Target folder does not exist: {target}", path=target, operation="compare")
        require_directory(source)
        require_directory(target)

        logging.info(f"Comparing {source} with {target}")
        self.hasher.clear_cache()
        src_index = self._index(source)
        dst_index = self._index(target)

        results = []
        for rel, (src_rec, src_hash) in src_index.items():
            if rel in dst_index:
                dst_rec, dst_hash = dst_index[rel]
                same = src_hash is not None and src_hash == dst_hash
                results.append(CompareEntry(
                    relative_path=rel,
                    status=CompareStatus.IDENTICAL if same else CompareStatus.DIFFERENT,
                    source_file=src_rec,
                    target_file=dst_rec,
                    size_diff=src_rec.size - dst_rec.size,
                ))
            else:
                results.append(CompareEntry(rel, CompareStatus.ONLY_SOURCE, src_rec, None, src_rec.size))

        for rel, (dst_rec, _) in dst_index.items():
            if rel not in src_index:
                results.append(CompareEntry(rel, CompareStatus.ONLY_TARGET, None, dst_rec, -dst_rec.size))

        results.sort(key=lambda r: r.relative_path)
        return CompareSummary(source_path=str(source), target_path=str(target), results=results)

    def merge(self, source: Path, target: Path, options: Optional[MergeOptions] = None) -> MergeResult:
        """
        Copies source entries into target according to `options`. One
        failed copy never stops the batch; the source tree is deleted
        afterwards only when requested and nothing failed.
        """
        options = options or MergeOptions()
        strategy = MergeStrategy(options.strategy)
        source = Path(os.path.abspath(source))
        target = Path(os.path.abspath(target))
        if not source.exists():
            raise EntryNotFoundError(f"Source folder does not exist: {source}", path=source, operation="merge")
        if not target.exists():
            try:
                target.mkdir(parents=True)
            except OSError as e:
                raise FileOperationError(f"Cannot create target folder {target}: {e}", path=target, operation="merge") from e

        comparison = self.compare(source, target)
        result = MergeResult()

        for entry in tqdm(comparison.results, desc="Merging", disable=None):
            if entry.status == CompareStatus.ONLY_SOURCE:
                wanted = options.include_only_in_source
            elif entry.status == CompareStatus.DIFFERENT:
                wanted = options.include_different
            else:
                # Identical or only in target: nothing to bring over
                result.files_skipped += 1
                continue
            if not wanted:
                continue

            src_path = Path(entry.source_file.path)
            dest_path = target / entry.relative_path
            existed = dest_path.exists()

            if existed:
                if strategy == MergeStrategy.RENAME:
                    dest_path = unique_path(dest_path)
                    existed = False
                elif not self._should_overwrite(strategy, src_path, dest_path):
                    result.files_skipped += 1
                    continue

            try:
                dest_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(src_path, dest_path)
            except OSError as e:
                logging.error(f"Merge failed for {entry.relative_path}: {e}")
                result.errors.append(f"{entry.relative_path}: {e}")
                continue

            if existed:
                result.files_overwritten += 1
            else:
                result.files_copied += 1
            result.bytes_transferred += entry.source_file.size

        if options.delete_source_after and not result.errors:
            try:
                shutil.rmtree(source)
                logging.info(f"Removed merged source {source}")
            except OSError as e:
                result.errors.append(f"Cannot delete source folder {source}: {e}")

        logging.info(
            f"Merge complete: {result.files_copied} copied, {result.files_overwritten} overwritten, "
            f"{result.files_skipped} skipped, {len(result.errors)} error(s)"
        )
        return result

    @staticmethod
    def _should_overwrite(strategy: MergeStrategy, src: Path, dest: Path) -> bool:
        if strategy == MergeStrategy.OVERWRITE_ALL:
            return True
        if strategy in (MergeStrategy.OVERWRITE_NEWER, MergeStrategy.OVERWRITE_OLDER):
            try:
                src_mtime = src.stat().st_mtime
                dest_mtime = dest.stat().st_mtime
            except OSError:
                return False
            if strategy == MergeStrategy.OVERWRITE_NEWER:
                return src_mtime > dest_mtime
            return src_mtime < dest_mtime
        return False
