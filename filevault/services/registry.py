# filevault/services/registry.py
"""
In-memory index of stored files.

The Registry is the only writer of the name -> FileRecord mapping. One instance
is created per application and shared by every request handler; all access goes
through a single lock, so name resolution, token minting and deletion never
interleave with each other.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Callable, Dict, List, Optional, Set, Tuple

from filevault.core.errors import InvalidNameError, NotFoundError
from filevault.services.blobstore import BlobStore, StagedBlob
from filevault.services.tokens import generate_token

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
NAME_MAX = 255  # bytes per path component on common filesystems


@dataclass(frozen=True)
class FileRecord:
    name: str
    size: int
    storage_path: Path
    created_at: datetime
    public_token: Optional[str] = None

    @property
    def is_public(self) -> bool:
        return self.public_token is not None


def validate_name(name: str) -> str:
    """Reject names that are empty or could address anything but a file directly under the root."""
    if not name or name in (".", ".."):
        raise InvalidNameError("File name is required")
    if any(c in name for c in ("/", "\\", "\x00")):
        raise InvalidNameError(f"File name must not contain path separators: {name!r}")
    if name.startswith("."):
        raise InvalidNameError(f"File name must not start with a dot: {name!r}")
    try:
        encoded = name.encode("utf-8")
    except UnicodeEncodeError:
        raise InvalidNameError(f"File name is not valid UTF-8: {name!r}") from None
    if len(encoded) > NAME_MAX:
        raise InvalidNameError(f"File name is longer than {NAME_MAX} bytes")
    return name


def _fit(stem: str, suffix: str) -> str:
    """Join stem and suffix, cutting the stem so the result stays within NAME_MAX bytes."""
    budget = NAME_MAX - len(suffix.encode("utf-8"))
    cut = stem.encode("utf-8")[:max(budget, 0)].decode("utf-8", errors="ignore")
    return f"{cut}{suffix}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Registry:
    def __init__(
        self,
        store: BlobStore,
        clock: Callable[[], datetime] = _utcnow,
        token_factory: Callable[[], str] = generate_token,
    ):
        self._store = store
        self._clock = clock
        self._token_factory = token_factory
        self._lock = threading.Lock()
        self._records: Dict[str, FileRecord] = {}
        self._by_token: Dict[str, str] = {}
        self._issued: Set[str] = set()

    def load(self) -> int:
        """Rebuild the index from whatever the blob store already holds."""
        scanned = self._store.scan()
        with self._lock:
            self._records = {
                b.name: FileRecord(
                    name=b.name,
                    size=b.size,
                    storage_path=self._store.root / b.name,
                    created_at=b.modified_at,
                )
                for b in scanned
            }
            self._by_token = {}
        logger.info("Loaded %d files from %s", len(scanned), self._store.root)
        return len(scanned)

    # ---- mutations ----

    def _is_taken(self, name: str) -> bool:
        return name in self._records or self._store.exists(self._store.path_for(name))

    def _resolve_name(self, desired: str) -> str:
        if not self._is_taken(desired):
            return desired
        p = PurePosixPath(desired)
        stem, ext = p.stem, p.suffix
        stamp = f"_{self._clock().strftime(TIMESTAMP_FORMAT)}"
        if len(f"{stamp}_0{ext}".encode("utf-8")) > NAME_MAX // 2:
            # extension too long to keep; fold it into the stem
            stem, ext = desired, ""
        candidate = _fit(stem, f"{stamp}{ext}")
        n = 2
        while self._is_taken(candidate):
            candidate = _fit(stem, f"{stamp}_{n}{ext}")
            n += 1
        return candidate

    def register(self, desired_name: str, staged: StagedBlob) -> FileRecord:
        """
        Admit already-written content under `desired_name`, or a disambiguated
        variant of it if the name is taken. Never replaces an existing record.
        """
        validate_name(desired_name)
        with self._lock:
            name = self._resolve_name(desired_name)
            path = self._store.path_for(name)
            self._store.commit(staged, path)
            record = FileRecord(name=name, size=staged.size, storage_path=path, created_at=self._clock())
            self._records[name] = record
        logger.info("Registered %s (%d bytes)", name, record.size)
        return record

    def upload(self, desired_name: str, stream: BinaryIO) -> FileRecord:
        """Stream content into the store, then register it. Nothing is left behind on failure."""
        validate_name(desired_name)
        staged = self._store.stage(stream)
        try:
            return self.register(desired_name, staged)
        except Exception:
            self._store.discard(staged)
            raise

    def share(self, name: str) -> str:
        with self._lock:
            record = self._get(name)
            if record.public_token is not None:
                return record.public_token
            token = self._token_factory()
            while token in self._issued:
                token = self._token_factory()
            self._issued.add(token)
            self._records[name] = replace(record, public_token=token)
            self._by_token[token] = name
        logger.info("Shared %s", name)
        return token

    def unshare(self, name: str) -> None:
        with self._lock:
            record = self._get(name)
            if record.public_token is None:
                return
            self._by_token.pop(record.public_token, None)
            self._records[name] = replace(record, public_token=None)
        logger.info("Unshared %s", name)

    def delete(self, name: str) -> None:
        """Remove content and record together; on a storage failure both stay."""
        with self._lock:
            record = self._get(name)
            self._store.remove(record.storage_path)
            del self._records[name]
            if record.public_token is not None:
                self._by_token.pop(record.public_token, None)
        logger.info("Deleted %s", name)

    # ---- reads ----

    def _get(self, name: str) -> FileRecord:
        record = self._records.get(name)
        if record is None:
            raise NotFoundError("File not found")
        return record

    def list(self) -> List[FileRecord]:
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda r: r.name)

    def lookup(self, name: str) -> FileRecord:
        with self._lock:
            return self._get(name)

    def _get_public(self, token: str) -> FileRecord:
        name = self._by_token.get(token)
        record = self._records.get(name) if name is not None else None
        if record is None or not record.is_public:
            raise NotFoundError("File not found or not public")
        return record

    def lookup_by_token(self, token: str) -> FileRecord:
        with self._lock:
            return self._get_public(token)

    def open(self, name: str) -> Tuple[FileRecord, BinaryIO]:
        """Resolve and open in one step so a concurrent delete cannot slip in between."""
        with self._lock:
            record = self._get(name)
            return record, self._store.open(record.storage_path)

    def open_public(self, token: str) -> Tuple[FileRecord, BinaryIO]:
        with self._lock:
            record = self._get_public(token)
            return record, self._store.open(record.storage_path)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
