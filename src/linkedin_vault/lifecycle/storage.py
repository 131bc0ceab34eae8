"""Object store for raw archives and derived artifacts.

Keys are slash-separated relative paths such as
``users/<uid>/exports/<backup_id>/raw.zip``. The local implementation maps
them onto a directory tree.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path

from ..common import StorageError, normalize_path, has_parent_traversal, is_absolute_member

logger = logging.getLogger(__name__)


class LocalObjectStore:
    """Directory-backed object store."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def _resolve(self, key: str) -> Path:
        normalized = normalize_path(key).strip("/") if key else ""
        if not normalized or has_parent_traversal(normalized) or is_absolute_member(key):
            raise StorageError(f"Invalid object key: {key!r}", key=key)
        return self.root / normalized

    def put(self, key: str, data: bytes) -> str:
        """Write an object, replacing any previous content atomically."""
        path = self._resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}", key=key) from e

        logger.debug(f"Stored object {{'key': {key!r}, 'bytes': {len(data)}}}")
        return key

    def get(self, key: str) -> bytes:
        path = self._resolve(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise StorageError(f"Object not found: {key}", key=key) from e
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}", key=key) from e

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def delete(self, key: str) -> bool:
        """Delete one object. Returns False if it did not exist."""
        path = self._resolve(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}", key=key) from e
        logger.debug(f"Deleted object {key}")
        return True

    def delete_prefix(self, prefix: str) -> int:
        """Delete every object under a key prefix. Returns the number deleted."""
        path = self._resolve(prefix)
        if path.is_file():
            return int(self.delete(prefix))
        if not path.exists():
            return 0
        count = sum(1 for p in path.rglob("*") if p.is_file())
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise StorageError(f"Failed to delete prefix {prefix}: {e}", key=prefix) from e
        logger.debug(f"Deleted prefix {{'prefix': {prefix!r}, 'objects': {count}}}")
        return count
