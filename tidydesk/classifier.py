"""
Extension -> category classification.
"""
import logging
from typing import Dict, Iterable, Optional

from . import config
from .models import ExtensionMapping, FileCategory

CATEGORY_FOLDERS = {
    FileCategory.IMAGES: "Images",
    FileCategory.DOCUMENTS: "Documents",
    FileCategory.VIDEOS: "Videos",
    FileCategory.MUSIC: "Music",
    FileCategory.ARCHIVES: "Archives",
    FileCategory.INSTALLERS: "Installers",
    FileCategory.CODE: "Code",
    FileCategory.OTHERS: "Others",
}

CATEGORY_LABELS = {
    FileCategory.IMAGES: "이미지",
    FileCategory.DOCUMENTS: "문서",
    FileCategory.VIDEOS: "동영상",
    FileCategory.MUSIC: "음악",
    FileCategory.ARCHIVES: "압축파일",
    FileCategory.INSTALLERS: "설치파일",
    FileCategory.CODE: "코드",
    FileCategory.OTHERS: "기타",
}


def normalize_extension(extension: str) -> str:
    ext = (extension or "").strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


def classify(extension: str) -> FileCategory:
    """Total and case-insensitive; anything unknown (including '') is OTHERS."""
    value = config.EXT_TO_CATEGORY.get(normalize_extension(extension))
    return FileCategory(value) if value else FileCategory.OTHERS


def category_folder_name(category: FileCategory) -> str:
    return CATEGORY_FOLDERS[category]


def category_label(category: FileCategory) -> str:
    return CATEGORY_LABELS[category]


class Classifier:
    """
    Classifies with user-stored extension mappings taking precedence over the
    compiled table. Mappings naming an unknown category are ignored.
    """

    def __init__(self, mappings: Optional[Iterable[ExtensionMapping]] = None):
        self._overrides: Dict[str, ExtensionMapping] = {}
        for mapping in mappings or []:
            try:
                FileCategory(mapping.category)
            except ValueError:
                logging.warning(f"Ignoring mapping {mapping.extension}: unknown category {mapping.category!r}")
                continue
            self._overrides[normalize_extension(mapping.extension)] = mapping

    def classify(self, extension: str) -> FileCategory:
        mapping = self._overrides.get(normalize_extension(extension))
        if mapping:
            return FileCategory(mapping.category)
        return classify(extension)

    def target_folder(self, extension: str) -> str:
        """Folder name for category-based organization."""
        mapping = self._overrides.get(normalize_extension(extension))
        if mapping and mapping.target_folder:
            return mapping.target_folder
        return category_folder_name(self.classify(extension))
