"""Directory-backed JSON record store."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple, Union

from cluster_registry.core.errors import (
    RecordNotFound,
    RecordParseError,
    RegistryValidationError,
    StoreIOError,
)

logger = logging.getLogger(__name__)


NODES = "nodes"
PLACEMENTS = "placements"

NAMESPACES = (NODES, PLACEMENTS)

DIR_MODE = 0o755
FILE_MODE = 0o644

RECORD_SUFFIX = ".json"


def validate_key(key: str) -> str:
    """Reject keys that cannot be used as a bare file stem."""
    if not isinstance(key, str) or not key:
        raise RegistryValidationError("record key required")
    if "/" in key or "\\" in key or "\x00" in key:
        raise RegistryValidationError(f"record key contains a path separator: {key!r}")
    if key.startswith("."):
        raise RegistryValidationError(f"record key must not start with '.': {key!r}")
    return key


class JsonFileStore:
    """
    One JSON document per file under `<base_dir>/<namespace>/<key>.json`.

    Writes go through a temporary file in the same directory followed by
    os.replace, so readers on this host see either the old or the new
    document, never a partial one. Single process per base directory.
    """

    def __init__(self, base_dir: Union[str, Path]):
        self._base_dir = Path(base_dir)
        self.ensure_layout()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def ensure_layout(self) -> None:
        """Create the base directory and every namespace directory."""
        self._make_dir(self._base_dir)
        for namespace in NAMESPACES:
            self._make_dir(self._base_dir / namespace)

    def _make_dir(self, path: Path) -> None:
        if path.is_dir():
            return
        try:
            path.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            # mkdir mode is filtered by the umask
            os.chmod(path, DIR_MODE)
        except OSError as e:
            raise StoreIOError(f"Failed to create directory {path}: {e}") from e

    def _path(self, namespace: str, key: str) -> Path:
        return self._base_dir / namespace / f"{validate_key(key)}{RECORD_SUFFIX}"

    # ============================================
    # PRIMITIVES
    # ============================================

    def read(self, namespace: str, key: str) -> Dict[str, Any]:
        """
        Load and decode one record.

        Raises RecordNotFound if the file is missing, StoreIOError on any
        other OS failure and RecordParseError if the content is not a JSON
        object.
        """
        path = self._path(namespace, key)
        try:
            data = path.read_bytes()
        except FileNotFoundError as e:
            raise RecordNotFound(namespace, key) from e
        except OSError as e:
            raise StoreIOError(f"Failed to read {path}: {e}") from e

        try:
            record = json.loads(data)
        except (ValueError, UnicodeDecodeError) as e:
            raise RecordParseError(f"Malformed JSON in {path}: {e}") from e

        if not isinstance(record, dict):
            raise RecordParseError(f"Expected a JSON object in {path}")

        return record

    def write(self, namespace: str, key: str, record: Dict[str, Any]) -> None:
        """Serialize record as indented JSON and atomically replace the file."""
        self.write_document(namespace, key, json.dumps(record, indent=2))

    def write_document(self, namespace: str, key: str, document: str) -> None:
        """Atomically replace the file with already-serialized JSON text."""
        path = self._path(namespace, key)
        self._make_dir(path.parent)

        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent, prefix=f".{key}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(document)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, FILE_MODE)
            os.replace(tmp_path, path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise StoreIOError(f"Failed to write {path}: {e}") from e

        self._sync_dir(path.parent)

    def _sync_dir(self, directory: Path) -> None:
        # Persist the rename; not every platform can open a directory
        try:
            dir_fd = os.open(directory, os.O_RDONLY)
        except OSError:
            return
        try:
            os.fsync(dir_fd)
        except OSError:
            pass
        finally:
            os.close(dir_fd)

    def delete(self, namespace: str, key: str) -> None:
        """Remove a record. Raises RecordNotFound if it does not exist."""
        path = self._path(namespace, key)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise RecordNotFound(namespace, key) from e
        except OSError as e:
            raise StoreIOError(f"Failed to delete {path}: {e}") from e

    def exists(self, namespace: str, key: str) -> bool:
        return self._path(namespace, key).is_file()

    # ============================================
    # ENUMERATION
    # ============================================

    def _scan(self, namespace: str) -> List[str]:
        directory = self._base_dir / namespace
        try:
            entries = list(os.scandir(directory))
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreIOError(f"Failed to list {directory}: {e}") from e

        keys = []
        for entry in entries:
            if not entry.name.endswith(RECORD_SUFFIX) or entry.name.startswith("."):
                continue
            try:
                if entry.is_dir():
                    continue
            except OSError:
                continue
            keys.append(entry.name[: -len(RECORD_SUFFIX)])
        return keys

    def iter_records(self, namespace: str) -> Iterator[Tuple[str, Dict[str, Any]]]:
        """
        Yield (key, record) for every readable record in a namespace.

        Best effort: files that vanish, cannot be read or do not parse
        are skipped and logged; a missing namespace yields nothing.
        """
        for key in self._scan(namespace):
            try:
                record = self.read(namespace, key)
            except RecordNotFound:
                continue
            except (RecordParseError, StoreIOError) as e:
                logger.warning(f"Skipping {namespace}/{key}{RECORD_SUFFIX}: {e}")
                continue
            yield key, record

    def enumerate(self, namespace: str) -> List[str]:
        """Keys of every readable record in a namespace."""
        return [key for key, _ in self.iter_records(namespace)]

    def __repr__(self) -> str:
        return f"<JsonFileStore(base_dir={str(self._base_dir)!r})>"
