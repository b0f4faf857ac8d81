"""
Upload intake: validation, storage naming and blob writes for one upload request.

Images are stored under:  {upload_dir}/{epoch_ms}-{sequence}{ext}
"""
import itertools
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Sequence

from database.schemas import StorageDescriptor, public_path
from images_api.config.settings import Settings
from images_api.errors import NoFilesError, StorageIOError, TooManyFilesError, ValidationError
from images_api.utils.decorators import log_execution_time

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif"})
ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif"})

# name clashes only happen when another process shares the directory
MAX_NAME_ATTEMPTS = 100


def _format_size(num_bytes: int) -> str:
    if num_bytes % (1024 * 1024) == 0:
        return f"{num_bytes // (1024 * 1024)} MiB"
    return f"{num_bytes} bytes"


@dataclass(frozen=True)
class CandidateFile:
    """One file of an upload request, before validation."""
    original_filename: str
    content_type: str
    payload: bytes

    @property
    def extension(self) -> str:
        """Lowercased extension including the dot, '' when there is none."""
        return os.path.splitext(self.original_filename)[1].lower()

    @property
    def size(self) -> int:
        return len(self.payload)


class StorageNamer:
    """Hands out `<epoch-ms>-<sequence><ext>` names.

    The sequence is process-wide and lock-guarded, so two files stored in
    the same millisecond still get different names.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns):
        self._clock = clock
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    def next_name(self, extension: str) -> str:
        with self._lock:
            sequence = next(self._sequence)
        millis = self._clock() // 1_000_000
        return f"{millis}-{sequence:06d}{extension}"


class UploadIntake:
    """Validates a batch of candidate files and writes the accepted bytes to disk."""

    def __init__(self, settings: Settings, namer: StorageNamer | None = None):
        self.upload_dir = Path(settings.upload_dir)
        self.public_prefix = settings.public_prefix
        self.max_file_size = settings.max_file_size
        self.max_files = settings.max_files
        self.namer = namer or StorageNamer()

    def ensure_upload_dir(self) -> None:
        """Create the upload directory if it does not exist yet."""
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create upload directory {self.upload_dir}: {e}")
            raise StorageIOError("Upload directory is not available") from e

    def check_count(self, count: int) -> None:
        """Reject empty batches and batches above the per-request cap."""
        if count == 0:
            raise NoFilesError()
        if count > self.max_files:
            raise TooManyFilesError(f"Too many files: at most {self.max_files} images per upload")

    def _validate_file(self, candidate: CandidateFile) -> None:
        name = candidate.original_filename
        if candidate.extension.lstrip(".") not in ALLOWED_EXTENSIONS:
            raise ValidationError(f"Only JPG, PNG and GIF images are allowed ('{name}' has a disallowed type)")

        content_type = (candidate.content_type or "").split(";")[0].strip().lower()
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationError(
                f"Only JPG, PNG and GIF images are allowed ('{name}' was sent as disallowed type '{content_type}')"
            )

        if candidate.size > self.max_file_size:
            raise ValidationError(f"'{name}' exceeds the size limit of {_format_size(self.max_file_size)}")

    def validate(self, candidates: Sequence[CandidateFile]) -> None:
        """Validate the whole batch; the first failing file rejects all of it.

        Raises:
            NoFilesError: If the batch is empty
            TooManyFilesError: If the batch is larger than `max_files`
            ValidationError: If any file fails the extension, type or size rule
        """
        self.check_count(len(candidates))
        for candidate in candidates:
            self._validate_file(candidate)

    def _write_blob(self, candidate: CandidateFile) -> str:
        for _ in range(MAX_NAME_ATTEMPTS):
            filename = self.namer.next_name(candidate.extension)
            try:
                # "xb" refuses to overwrite, so a stored image is never replaced
                with open(self.upload_dir / filename, "xb") as fh:
                    fh.write(candidate.payload)
                return filename
            except FileExistsError:
                logger.warning(f"Storage name {filename} already taken, trying the next one")
            except OSError as e:
                logger.error(f"Error writing {filename} to {self.upload_dir}: {e}")
                raise StorageIOError("Failed to store the uploaded images") from e
        raise StorageIOError("Could not find a free storage name for the uploaded image")

    def store(self, candidates: Sequence[CandidateFile]) -> List[StorageDescriptor]:
        """Write already validated files and describe them, in input order.

        Files written before a failure stay on disk.
        """
        self.ensure_upload_dir()
        descriptors = []
        for candidate in candidates:
            filename = self._write_blob(candidate)
            logger.info(f"Stored '{candidate.original_filename}' as {filename} ({candidate.size} bytes)")
            descriptors.append(
                StorageDescriptor(filename=filename, path=public_path(filename, self.public_prefix))
            )
        return descriptors

    @log_execution_time
    def ingest(self, candidates: Sequence[CandidateFile]) -> List[StorageDescriptor]:
        """Validate every file, then store them all.

        Args:
            candidates: Files of one upload request

        Returns:
            One storage descriptor per file, in input order

        Raises:
            ValidationError: If any file is rejected; nothing is written
            StorageIOError: If writing to the upload directory fails
        """
        self.validate(candidates)
        return self.store(candidates)
