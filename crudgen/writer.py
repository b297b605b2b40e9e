# File: crudgen/writer.py
"""
crudgen - Idempotent Writer
=============================
Puts ``ArtifactFile`` values on disk under one output root.

    * ``generated`` artifacts are (re)written on every run.
    * ``derived`` artifacts are written only when the file does not exist
      yet; an existing file is left untouched, whatever its content.

Each write is atomic: the content goes to a temporary file in the target
directory, is fsync'ed, then renamed over the destination.  A failed write
leaves the previous file (if any) in place and raises ``ArtifactWriteError``.
There is no rollback of files already written earlier in the batch.

The existence check and the write for one path happen under a lock, so two
threads sharing a writer cannot both decide to create the same derived file.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional

from crudgen.errors import ArtifactWriteError
from crudgen.models import ArtifactFile, ArtifactKind
from crudgen.utils import count_lines, sha256_hex

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.writer")


class WriteOutcome(str, Enum):
    WRITTEN = "written"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class FileRecord:
    """
    Immutable record of one artifact handled by the writer.

    Size, line count and checksum describe what is on disk afterwards: the
    new content when written, the existing file when skipped.
    """

    relative_path: str
    absolute_path: str
    kind: ArtifactKind
    outcome: WriteOutcome
    size_bytes: int
    line_count: int
    sha256: str

    @property
    def written(self) -> bool:
        return self.outcome == WriteOutcome.WRITTEN


class IdempotentWriter:
    """
    Writes artifacts below ``root``.

    Usage::

        writer = IdempotentWriter(Path("./out"))
        record = writer.write(artifact)
        print(record.outcome)

    With ``dry_run=True`` nothing touches the disk; records still report
    what would have been written or skipped.
    """

    def __init__(self, root: Path, dry_run: bool = False) -> None:
        self._root: Path = Path(root).resolve()
        self._dry_run: bool = dry_run
        self._lock: threading.Lock = threading.Lock()
        self._records: List[FileRecord] = []

    @property
    def root(self) -> Path:
        return self._root

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    @property
    def records(self) -> List[FileRecord]:
        return list(self._records)

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def write(self, artifact: ArtifactFile) -> FileRecord:
        """
        Write one artifact, honouring its kind.

        Raises:
            ArtifactWriteError: the directory or file could not be written.
        """
        target: Path = self._root / artifact.path
        content: bytes = artifact.content.encode("utf-8")

        with self._lock:
            if artifact.is_derived and target.exists():
                outcome: WriteOutcome = WriteOutcome.SKIPPED
                try:
                    content = target.read_bytes()
                except OSError as exc:
                    raise ArtifactWriteError(
                        artifact.path, f"cannot read existing file: {type(exc).__name__}: {exc}"
                    ) from exc
                logger.info("Skipped %s (derived file already exists).", artifact.path)
            else:
                if not self._dry_run:
                    try:
                        target.parent.mkdir(parents=True, exist_ok=True)
                        self._atomic_write(target, content)
                    except OSError as exc:
                        raise ArtifactWriteError(
                            artifact.path, f"{type(exc).__name__}: {exc}"
                        ) from exc
                outcome = WriteOutcome.WRITTEN
                logger.debug(
                    "%s %s (%d bytes).",
                    "Would write" if self._dry_run else "Wrote",
                    artifact.path,
                    len(content),
                )

            record: FileRecord = FileRecord(
                relative_path=artifact.path,
                absolute_path=str(target),
                kind=artifact.kind,
                outcome=outcome,
                size_bytes=len(content),
                line_count=count_lines(content.decode("utf-8", errors="replace")),
                sha256=sha256_hex(content),
            )
            self._records.append(record)
        return record

    def write_all(self, artifacts: Iterable[ArtifactFile]) -> List[FileRecord]:
        """Write artifacts in order, stopping at the first failure."""
        return [self.write(artifact) for artifact in artifacts]

    def find(self, relative_path: str) -> Optional[FileRecord]:
        for record in reversed(self._records):
            if record.relative_path == relative_path:
                return record
        return None

    # -----------------------------------------------------------------
    # Internal
    # -----------------------------------------------------------------

    @staticmethod
    def _atomic_write(target_path: Path, data: bytes) -> None:
        """
        Write to a temp file next to *target_path*, then ``os.replace`` it.

        The temp file lives in the same directory so the rename never
        crosses a filesystem.
        """
        fd, tmp_path = tempfile.mkstemp(
            dir=str(target_path.parent),
            prefix=f".{target_path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, str(target_path))
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def __repr__(self) -> str:
        return f"<IdempotentWriter {self._root} records={len(self._records)}>"


__all__: List[str] = [
    "WriteOutcome",
    "FileRecord",
    "IdempotentWriter",
]

logger.debug("crudgen.writer loaded.")
