"""
Size and timestamp rendering shared by every component.
"""
from datetime import datetime
from typing import Optional

from . import config

KB = 1024
MB = KB * 1024
GB = MB * 1024


def format_size(size: int) -> str:
    if size >= GB:
        return f"{size / GB:.1f}GB"
    if size >= MB:
        return f"{size / MB:.1f}MB"
    if size >= KB:
        return f"{size / KB:.1f}KB"
    return f"{size}B"


def format_timestamp(ts: Optional[float]) -> str:
    """Local-time rendering used in listings and rule conditions."""
    if ts is None:
        return "Unknown"
    return datetime.fromtimestamp(ts).strftime(config.TIMESTAMP_FORMAT)


def date_folder(ts: Optional[float], fmt: str = config.DEFAULT_DATE_FOLDER_FORMAT) -> str:
    """
    Folder name derived from a modification time.
    Known formats are YYYY-MM, YYYY/MM, YYYY and YYYY-MM-DD; anything else
    yields YYYY-MM-DD.
    """
    if ts is None:
        return "Unknown"
    pattern = config.DATE_FOLDER_FORMATS.get(fmt, config.FALLBACK_DATE_FOLDER_FORMAT)
    return datetime.fromtimestamp(ts).strftime(pattern)
