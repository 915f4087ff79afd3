import pytest

from tidydesk import config
from tidydesk.classifier import Classifier, category_folder_name, classify, normalize_extension
from tidydesk.models import ExtensionMapping, FileCategory


def test_every_table_entry_classifies():
    for ext, category in config.EXT_TO_CATEGORY.items():
        assert classify(ext) == FileCategory(category)
        # Case-insensitive
        assert classify(ext.upper()) == FileCategory(category)

@pytest.mark.parametrize("ext", ["", ".xyz", ".jpg.bak", "jpeg2000", ".", ".hwpx"])
def test_unknown_is_others(ext):
    assert classify(ext) == FileCategory.OTHERS

def test_extension_without_dot():
    assert normalize_extension("PNG") == ".png"
    assert classify("pdf") == FileCategory.DOCUMENTS

def test_category_sets_do_not_overlap():
    sets = [config.IMAGE_EXTS, config.DOCUMENT_EXTS, config.VIDEO_EXTS, config.MUSIC_EXTS,
            config.ARCHIVE_EXTS, config.INSTALLER_EXTS, config.CODE_EXTS]
    assert sum(len(s) for s in sets) == len(config.EXT_TO_CATEGORY)

def test_stored_mapping_overrides_table():
    c = Classifier([ExtensionMapping(extension=".txt", category="code", target_folder="Snippets")])
    assert c.classify(".TXT") == FileCategory.CODE
    assert c.target_folder(".txt") == "Snippets"
    # Untouched extensions fall back to the compiled table
    assert c.classify(".jpg") == FileCategory.IMAGES
    assert c.target_folder(".jpg") == category_folder_name(FileCategory.IMAGES)

def test_mapping_with_unknown_category_is_ignored():
    c = Classifier([ExtensionMapping(extension=".jpg", category="pictures", target_folder="Pics")])
    assert c.classify(".jpg") == FileCategory.IMAGES

def test_seeded_mappings_match_table(db_ops):
    stored = {m.extension: m.category for m in db_ops.list_extension_mappings()}
    assert stored == config.EXT_TO_CATEGORY

    c = Classifier(db_ops.list_extension_mappings())
    for ext, category in config.EXT_TO_CATEGORY.items():
        assert c.classify(ext) == classify(ext) == FileCategory(category)
