import os
import struct
from pathlib import Path
from typing import Dict, Optional, Tuple

import xxhash

from .. import config
from ..exceptions import FileHashError
from ..models import Fingerprint


class FileHasher:
    """
    Windowed content fingerprints.

    Strategy:
    1. Read min(64 KB, size) bytes from the start.
    2. If size > 128 KB, also read the last 64 KB.
    3. Append the size as 8 little-endian bytes and digest with XXH3-64.

    XXH3 is a fast non-cryptographic hash: it tells files apart, it does not
    defend against crafted collisions. Content confined to the unread middle
    of a large file does not affect the result.
    """

    def __init__(self):
        # (path, inode, size, mtime_ns, ctime_ns) -> Fingerprint. Callers clear it per run,
        # since a same-size rewrite within one timestamp tick keeps every key field.
        self._cache: Dict[Tuple[str, int, int, int, int], Fingerprint] = {}

    def fingerprint(self, path: Path) -> Fingerprint:
        path = Path(path)
        try:
            st = path.stat()
        except OSError as e:
            raise FileHashError(f"Cannot stat {path}: {e}", path=path, operation="fingerprint") from e

        key = (str(path), st.st_ino, st.st_size, st.st_mtime_ns, st.st_ctime_ns)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        result = self._compute(path)
        self._cache[key] = result
        return result

    def fingerprint_hex(self, path: Path) -> Optional[str]:
        """Like fingerprint() but returns None instead of raising."""
        try:
            return self.fingerprint(path).hex
        except FileHashError:
            return None

    def clear_cache(self):
        self._cache.clear()

    def _compute(self, path: Path) -> Fingerprint:
        window = config.FINGERPRINT_WINDOW
        h = xxhash.xxh3_64()
        try:
            with open(path, 'rb') as f:
                file_size = os.fstat(f.fileno()).st_size

                # 1. Front window
                front_len = min(window, file_size)
                h.update(self._read_exact(f, front_len, path))

                # 2. Back window
                if file_size > config.FINGERPRINT_TWO_WINDOW_THRESHOLD:
                    f.seek(-window, os.SEEK_END)
                    h.update(self._read_exact(f, window, path))
        except OSError as e:
            raise FileHashError(f"Cannot read {path}: {e}", path=path, operation="fingerprint") from e

        # 3. Length mixed in so equal windows of different-length files differ
        h.update(struct.pack('<Q', file_size))
        return Fingerprint(digest=h.intdigest(), size=file_size)

    @staticmethod
    def _read_exact(f, n: int, path: Path) -> bytes:
        data = f.read(n)
        if len(data) != n:
            raise FileHashError(
                f"Short read on {path}: expected {n} bytes, got {len(data)}",
                path=path, operation="fingerprint",
            )
        return data


_default_hasher = FileHasher()


def fingerprint(path: Path) -> Fingerprint:
    """Module-level convenience over a shared FileHasher."""
    return _default_hasher.fingerprint(path)
