"""
Configuration constants for tidydesk.
"""
from pathlib import Path

# --- File Type Definitions ---
IMAGE_EXTS = {
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.svg', '.webp', '.ico', '.psd',
    '.ai', '.tiff', '.raw', '.heic',
}
DOCUMENT_EXTS = {
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx', '.hwp',
    '.txt', '.rtf', '.odt', '.ods', '.odp', '.pages', '.numbers', '.key', '.epub',
}
VIDEO_EXTS = {
    '.mp4', '.avi', '.mkv', '.mov', '.wmv', '.flv', '.webm', '.m4v', '.mpeg',
    '.mpg', '.3gp',
}
MUSIC_EXTS = {
    '.mp3', '.wav', '.flac', '.aac', '.m4a', '.wma', '.ogg', '.opus', '.aiff',
    '.alac',
}
ARCHIVE_EXTS = {
    '.zip', '.rar', '.7z', '.tar', '.gz', '.bz2', '.xz', '.lz', '.lzma', '.cab',
    '.iso',
}
INSTALLER_EXTS = {
    '.exe', '.msi', '.dmg', '.pkg', '.deb', '.rpm', '.app', '.apk', '.appx',
}
CODE_EXTS = {
    '.py', '.js', '.ts', '.tsx', '.jsx', '.html', '.css', '.scss', '.sass',
    '.less', '.java', '.cpp', '.c', '.h', '.hpp', '.cs', '.rs', '.go', '.rb',
    '.php', '.swift', '.kt', '.scala', '.json', '.xml', '.yaml', '.yml', '.toml',
    '.md', '.sh', '.bash', '.zsh', '.ps1', '.sql', '.r', '.m', '.lua', '.pl',
    '.vim', '.vue', '.svelte',
}

# Extension to Category Mapping
# Values are FileCategory values; every extension belongs to exactly one set.
EXT_TO_CATEGORY = {}
for ext in IMAGE_EXTS: EXT_TO_CATEGORY[ext] = 'images'
for ext in DOCUMENT_EXTS: EXT_TO_CATEGORY[ext] = 'documents'
for ext in VIDEO_EXTS: EXT_TO_CATEGORY[ext] = 'videos'
for ext in MUSIC_EXTS: EXT_TO_CATEGORY[ext] = 'music'
for ext in ARCHIVE_EXTS: EXT_TO_CATEGORY[ext] = 'archives'
for ext in INSTALLER_EXTS: EXT_TO_CATEGORY[ext] = 'installers'
for ext in CODE_EXTS: EXT_TO_CATEGORY[ext] = 'code'

# --- Fingerprinting ---
# Front window is always read; the back window only when the file is larger
# than both windows together.
FINGERPRINT_WINDOW = 64 * 1024  # 64 KB
FINGERPRINT_TWO_WINDOW_THRESHOLD = 2 * FINGERPRINT_WINDOW  # 128 KB

# --- Formatting ---
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FOLDER_FORMATS = {
    "YYYY-MM": "%Y-%m",
    "YYYY/MM": "%Y/%m",
    "YYYY": "%Y",
    "YYYY-MM-DD": "%Y-%m-%d",
}
DEFAULT_DATE_FOLDER_FORMAT = "YYYY-MM"
FALLBACK_DATE_FOLDER_FORMAT = "%Y-%m-%d"

# --- Storage ---
DATA_DIR = Path.home() / ".tidydesk"
DB_FILENAME = "tidydesk.db"
LOG_FILENAME = "tidydesk.log"
BACKUP_DIRNAME = "backups"
BACKUP_MANIFEST = ".tidydesk_backup.json"

# --- Default Rules ---
# (category, destination folder relative to the organized root)
DEFAULT_RULE_SEEDS = [
    ('images', 'Images'),
    ('documents', 'Documents'),
    ('videos', 'Videos'),
    ('music', 'Music'),
    ('archives', 'Archives'),
    ('installers', 'Installers'),
    ('code', 'Code'),
    ('others', 'Others'),
]

# --- Watcher ---
WATCH_POLL_INTERVAL = 2.0  # seconds between directory polls
WATCH_RECV_TIMEOUT = 0.1  # consumer wake-up to check the stop flag
WATCH_QUEUE_SIZE = 1024
