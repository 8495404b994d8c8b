# filevault/services/blobstore.py
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, List, Optional

from filevault.core.errors import InvalidNameError, NotFoundError, StorageError, TooLargeError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
STAGING_DIR = ".incoming"


@dataclass(frozen=True)
class StagedBlob:
    """Content fully written to a private staging file, waiting for its final name."""
    path: Path
    size: int


@dataclass(frozen=True)
class ScannedBlob:
    name: str
    size: int
    modified_at: datetime


class BlobStore:
    """
    Filesystem-backed byte storage rooted at a single directory.

    Every path handed in or out is checked to stay under the root.
    """

    def __init__(self, root: str, max_size: Optional[int] = None):
        self.root = Path(root).resolve()
        self.max_size = max_size
        self._staging = self.root / STAGING_DIR

    def ensure_root(self) -> None:
        """Create the root and staging area, dropping uploads left over from a previous run."""
        try:
            self._staging.mkdir(parents=True, exist_ok=True)
            stale = list(self._staging.glob("*.part"))
        except OSError as e:
            raise StorageError(f"Failed to create upload directory: {e}") from e
        for path in stale:
            self._discard(path)
        if stale:
            logger.info("Removed %d unfinished uploads from %s", len(stale), self._staging)

    def path_for(self, name: str) -> Path:
        """Map a validated flat file name onto a path under the root."""
        path = (self.root / name).resolve()
        if path.parent != self.root:
            raise InvalidNameError(f"Invalid file name: {name!r}")
        return path

    def _check_inside(self, path: Path) -> Path:
        path = Path(path).resolve()
        if path != self.root and self.root not in path.parents:
            raise InvalidNameError(f"Path escapes upload root: {path}")
        return path

    def exists(self, path: Path) -> bool:
        path = self._check_inside(path)
        try:
            os.lstat(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Error checking file: {e}") from e
        return True

    def write(self, path: Path, stream: BinaryIO) -> int:
        """
        Create `path` and copy all of `stream` into it.

        Aborts with TooLargeError once more than max_size bytes have been read.
        The partial file is removed on any failure.
        """
        path = self._check_inside(path)
        written = 0
        try:
            dst = open(path, "xb")
        except OSError as e:
            raise StorageError(f"Error creating file: {e}") from e
        try:
            with dst:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if self.max_size is not None and written > self.max_size:
                        raise TooLargeError(
                            f"File size exceeds maximum allowed ({self.max_size} bytes)"
                        )
                    dst.write(chunk)
        except TooLargeError:
            self._discard(path)
            raise
        except OSError as e:
            self._discard(path)
            raise StorageError(f"Error saving file: {e}") from e
        return written

    def stage(self, stream: BinaryIO) -> StagedBlob:
        path = self._staging / f"{uuid.uuid4().hex}.part"
        size = self.write(path, stream)
        return StagedBlob(path=path, size=size)

    def commit(self, staged: StagedBlob, path: Path) -> None:
        """Move a staged blob to its final location."""
        path = self._check_inside(path)
        try:
            os.replace(staged.path, path)
        except OSError as e:
            raise StorageError(f"Error creating file: {e}") from e

    def discard(self, staged: StagedBlob) -> None:
        self._discard(staged.path)

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove partial file %s", path, exc_info=True)

    def open(self, path: Path) -> BinaryIO:
        path = self._check_inside(path)
        try:
            return open(path, "rb")
        except FileNotFoundError as e:
            raise NotFoundError("File not found") from e
        except OSError as e:
            raise StorageError(f"Error opening file: {e}") from e

    def remove(self, path: Path) -> None:
        path = self._check_inside(path)
        try:
            os.remove(path)
        except OSError as e:
            raise StorageError(f"Error deleting file: {e}") from e

    def scan(self) -> List[ScannedBlob]:
        """Walk the root and report every regular file outside the staging area."""
        found = []
        try:
            for dirpath, dirnames, filenames in os.walk(self.root, onerror=_raise):
                if Path(dirpath) == self.root:
                    dirnames[:] = [d for d in dirnames if d != STAGING_DIR]
                for fname in filenames:
                    full = Path(dirpath) / fname
                    name = full.relative_to(self.root).as_posix()
                    try:
                        name.encode("utf-8")
                    except UnicodeEncodeError:
                        logger.warning("Skipping file with non UTF-8 name: %r", name)
                        continue
                    st = full.stat()
                    found.append(ScannedBlob(
                        name=name,
                        size=st.st_size,
                        modified_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
                    ))
        except OSError as e:
            raise StorageError(f"Failed to scan upload directory: {e}") from e
        return found


def _raise(err: OSError):
    raise err
