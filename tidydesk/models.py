from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .exceptions import PartialFailureError
from .formatting import format_size, format_timestamp


class FileCategory(str, Enum):
    IMAGES = "images"
    DOCUMENTS = "documents"
    VIDEOS = "videos"
    MUSIC = "music"
    ARCHIVES = "archives"
    INSTALLERS = "installers"
    CODE = "code"
    OTHERS = "others"


@dataclass(frozen=True)
class FileRecord:
    """
    Represents a file (or directory) found during an inventory pass.
    Built fresh on every pass and never persisted.
    """
    path: str               # absolute
    name: str
    extension: str          # lowercase with leading dot, '' when absent
    size: int
    created: Optional[float]    # epoch seconds
    modified: Optional[float]   # epoch seconds
    is_directory: bool
    is_hidden: bool
    category: FileCategory

    @property
    def size_formatted(self) -> str:
        return format_size(self.size)

    @property
    def created_at(self) -> str:
        return format_timestamp(self.created)

    @property
    def modified_at(self) -> str:
        return format_timestamp(self.modified)

    @property
    def stem(self) -> str:
        return Path(self.name).stem if self.extension else self.name


@dataclass(frozen=True)
class Fingerprint:
    """
    64-bit windowed content digest plus the file length.

    Only the first and last 64 KB are digested, so two files that differ
    only in their middle region compare equal. The digest is not
    collision-resistant against crafted input.
    """
    digest: int
    size: int

    @property
    def hex(self) -> str:
        return f"{self.digest:016x}"


@dataclass
class DuplicateGroup:
    fingerprint: str
    size: int
    files: List[FileRecord] = field(default_factory=list)

    @property
    def wasted_space(self) -> int:
        return self.size * (len(self.files) - 1)

    @property
    def size_formatted(self) -> str:
        return format_size(self.size)


@dataclass
class FolderTreeNode:
    path: str
    name: str
    size: int
    file_count: int
    children: List["FolderTreeNode"] = field(default_factory=list)

    @property
    def size_formatted(self) -> str:
        return format_size(self.size)


@dataclass
class CategoryStats:
    count: int = 0
    total_size: int = 0


@dataclass
class FolderStats:
    path: str
    total_size: int
    file_count: int
    folder_count: int
    largest_file: Optional[FileRecord]
    category_breakdown: dict = field(default_factory=dict)  # category value -> CategoryStats


# --- Folder comparison ---

class CompareStatus(str, Enum):
    ONLY_SOURCE = "only_in_source"
    ONLY_TARGET = "only_in_target"
    IDENTICAL = "identical"
    DIFFERENT = "different"


@dataclass
class CompareEntry:
    relative_path: str
    status: CompareStatus
    source_file: Optional[FileRecord]
    target_file: Optional[FileRecord]
    size_diff: int


@dataclass
class CompareSummary:
    source_path: str
    target_path: str
    results: List[CompareEntry] = field(default_factory=list)

    def _count(self, status: CompareStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def total_files(self) -> int:
        return len(self.results)

    @property
    def only_in_source(self) -> int:
        return self._count(CompareStatus.ONLY_SOURCE)

    @property
    def only_in_target(self) -> int:
        return self._count(CompareStatus.ONLY_TARGET)

    @property
    def identical(self) -> int:
        return self._count(CompareStatus.IDENTICAL)

    @property
    def different(self) -> int:
        return self._count(CompareStatus.DIFFERENT)

    @property
    def source_total_size(self) -> int:
        return sum(r.source_file.size for r in self.results if r.source_file)

    @property
    def target_total_size(self) -> int:
        return sum(r.target_file.size for r in self.results if r.target_file)


class MergeStrategy(str, Enum):
    SKIP_EXISTING = "skip_existing"
    OVERWRITE_ALL = "overwrite_all"
    OVERWRITE_NEWER = "overwrite_newer"
    OVERWRITE_OLDER = "overwrite_older"
    RENAME = "rename"


@dataclass
class MergeOptions:
    strategy: MergeStrategy = MergeStrategy.SKIP_EXISTING
    delete_source_after: bool = False
    include_only_in_source: bool = True
    include_different: bool = False


# --- Batch results ---

@dataclass
class BatchResult:
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def succeeded(self) -> int:
        return 0

    def raise_for_errors(self, operation: str = "batch"):
        if self.errors:
            raise PartialFailureError(
                f"{operation}: {len(self.errors)} item(s) failed",
                errors=self.errors,
                succeeded=self.succeeded(),
                operation=operation,
            )


@dataclass
class MergeResult(BatchResult):
    files_copied: int = 0
    files_skipped: int = 0
    files_overwritten: int = 0
    bytes_transferred: int = 0

    def succeeded(self) -> int:
        return self.files_copied + self.files_overwritten


@dataclass
class OrganizeResult(BatchResult):
    files_moved: int = 0
    files_skipped: int = 0
    history_id: Optional[int] = None

    def succeeded(self) -> int:
        return self.files_moved


@dataclass
class ExecuteRulesResult(BatchResult):
    executed_count: int = 0
    skipped_count: int = 0
    history_id: Optional[int] = None

    def succeeded(self) -> int:
        return self.executed_count


@dataclass
class RenameResult(BatchResult):
    renamed_count: int = 0
    failed_count: int = 0
    history_id: Optional[int] = None

    def succeeded(self) -> int:
        return self.renamed_count


@dataclass
class UndoResult(BatchResult):
    history_id: int = 0
    restored_count: int = 0

    def succeeded(self) -> int:
        return self.restored_count


# --- Rules ---

@dataclass
class Condition:
    field: str      # name / extension / size / createdDate / modifiedDate
    operator: str   # equals / contains / startsWith / endsWith / greaterThan / lessThan / matches
    value: str

    def to_dict(self) -> dict:
        return {"field": self.field, "operator": self.operator, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> "Condition":
        return cls(field=data.get("field", ""), operator=data.get("operator", ""),
                   value=str(data.get("value", "")))


@dataclass
class Rule:
    name: str
    conditions: List[Condition] = field(default_factory=list)
    condition_logic: str = "AND"        # AND / OR
    action_type: str = "move"           # move / copy / rename / delete
    action_destination: Optional[str] = None
    action_rename_pattern: Optional[str] = None
    create_date_subfolder: bool = False
    priority: int = 0
    enabled: bool = True
    id: Optional[int] = None


@dataclass
class DefaultRule:
    category: FileCategory
    destination: str                    # relative to the organized root
    enabled: bool = True
    create_date_subfolder: bool = False
    priority: int = 0
    id: Optional[int] = None


@dataclass
class ExtensionMapping:
    extension: str
    category: str
    target_folder: str
    id: Optional[int] = None


@dataclass
class Exclusion:
    pattern: str
    pattern_type: str
    id: Optional[int] = None


@dataclass
class PlanEntry:
    """One file's verdict in a unified organization plan."""
    file: FileRecord
    match_type: str                     # 'custom' or 'default'
    action_type: str
    destination: Optional[str]          # resolved folder, date subfolder included
    rule: Optional[Rule] = None
    default_rule: Optional[DefaultRule] = None


@dataclass
class RuleMatch:
    file: FileRecord
    rule: Rule
    action_preview: str


@dataclass
class OrganizePreview:
    category: FileCategory
    category_label: str
    destination_folder: str
    files: List[FileRecord] = field(default_factory=list)

    @property
    def file_count(self) -> int:
        return len(self.files)


@dataclass
class OrganizeOptions:
    create_date_subfolders: bool = False
    date_format: str = "YYYY-MM"
    handle_duplicates: str = "rename"   # overwrite / rename / skip


@dataclass
class RenameStep:
    rule_type: str  # findReplace / prefix / suffix / sequence / date / case / regex
    find_text: Optional[str] = None
    replace_text: Optional[str] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    start_number: Optional[int] = None
    digit_count: Optional[int] = None
    date_format: Optional[str] = None
    date_source: Optional[str] = None   # created / modified
    case_type: Optional[str] = None     # upper / lower / title
    regex_pattern: Optional[str] = None
    regex_replace: Optional[str] = None


@dataclass
class RenamePreview:
    original_path: str
    original_name: str
    new_name: str
    has_conflict: bool = False
    conflict_message: Optional[str] = None


# --- Backups ---

@dataclass
class BackupResult:
    backup_path: str
    files_count: int
    total_size: int


@dataclass
class BackupInfo:
    name: str
    path: str
    size: int
    file_count: int
    created_at: str
