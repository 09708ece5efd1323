"""
Attachment store: files on disk, rows in the database.

Background:
    Projects, issues and orders carry file attachments. The bytes live under
    the upload root (one directory tree per owner kind) and each file has an
    attachment row holding its path relative to that root. Disk and database
    cannot share a transaction, so the store orders its steps so that the
    inconsistency it can leave behind is always "a file with no row" (and even
    that only best-effort), never "a row with no file":

    - upload: write the file, then add the row; if the row fails, unlink the
      file. A batch unlinks every file it wrote when the surrounding
      transaction fails or the request is aborted.
    - delete: unlink the files first (missing files are fine, other failures
      are logged and skipped), then delete the rows unconditionally. Re-running
      a delete only retries what is left, so it is safe to repeat.

Filename policies (one per owner kind):
    projects, orders  KEEP_ORIGINAL  sanitized client filename in a per-owner
                                     directory, e.g. ``projects/12/a.png``
    issues            UNIQUE_SUFFIX  timestamp + random suffix, e.g.
                                     ``issues/7/a-1718000000000-483920117.png``

    Duplicate detection always compares the sanitized *original* filename with
    the attachment rows already stored for the owner and with earlier files of
    the same batch. Duplicates are reported as skipped, never stored twice.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
import io
import logging
import os
from pathlib import Path, PurePosixPath
import re
import secrets
import shutil
import tempfile
import time
from typing import Any, BinaryIO

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from projecthub.models.work import Issue, IssueFile, Order, OrderFile, Project, ProjectFile
from projecthub.storage.exceptions import AttachmentError, AttachmentErrorCode

logger = logging.getLogger(__name__)


class OwnerKind(str, Enum):
    PROJECT = "project"
    ISSUE = "issue"
    ORDER = "order"


class FilenamePolicy(str, Enum):
    KEEP_ORIGINAL = "keep_original"
    UNIQUE_SUFFIX = "unique_suffix"


@dataclass(frozen=True)
class OwnerSpec:
    kind: OwnerKind
    owner_model: type
    attachment_model: type
    owner_column: str
    directory: str
    policy: FilenamePolicy

    def owner_fk(self) -> Any:
        return getattr(self.attachment_model, self.owner_column)


OWNER_SPECS: dict[OwnerKind, OwnerSpec] = {
    OwnerKind.PROJECT: OwnerSpec(
        OwnerKind.PROJECT, Project, ProjectFile, "project_id", "projects", FilenamePolicy.KEEP_ORIGINAL
    ),
    OwnerKind.ISSUE: OwnerSpec(
        OwnerKind.ISSUE, Issue, IssueFile, "issue_id", "issues", FilenamePolicy.UNIQUE_SUFFIX
    ),
    OwnerKind.ORDER: OwnerSpec(
        OwnerKind.ORDER, Order, OrderFile, "order_id", "orders", FilenamePolicy.KEEP_ORIGINAL
    ),
}


@dataclass(frozen=True)
class IncomingFile:
    """A client file waiting to be stored."""

    filename: str
    stream: BinaryIO

    @classmethod
    def from_bytes(cls, filename: str, data: bytes) -> IncomingFile:
        return cls(filename=filename, stream=io.BytesIO(data))


@dataclass(frozen=True)
class FilenameCollision:
    filename: str
    message: str


@dataclass
class UploadResult:
    accepted: list[Any] = field(default_factory=list)
    skipped: list[FilenameCollision] = field(default_factory=list)


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._\- ]+")


def sanitize_filename(filename: str | None) -> str:
    """Reduce a client filename to a safe basename (no directories, no odd characters)."""

    name = (filename or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    name = _UNSAFE_CHARS.sub("_", name).lstrip(".").strip()
    if not name:
        return "upload"
    if len(name) > 200:
        stem, suffix = os.path.splitext(name)
        name = stem[: 200 - len(suffix)] + suffix
    return name


class AttachmentStore:
    def __init__(
        self,
        root: Path,
        clock: Callable[[], float] = time.time,
        random_suffix: Callable[[], int] = lambda: secrets.randbelow(10**9),
    ) -> None:
        self._root = Path(root).resolve()
        self._clock = clock
        self._random_suffix = random_suffix

    @property
    def root(self) -> Path:
        return self._root

    # ---- Paths ---------------------------------------------------------------------

    def resolve(self, relative_path: str) -> Path:
        """Absolute path for a stored relative path; refuses anything outside the root."""
        candidate = (self._root / PurePosixPath(relative_path)).resolve()
        if candidate != self._root and self._root not in candidate.parents:
            raise ValueError(f"attachment path escapes upload root: {relative_path!r}")
        return candidate

    def exists_on_disk(self, attachment: Any) -> bool:
        try:
            return self.resolve(attachment.file_path).is_file()
        except ValueError:
            return False

    def target_path(self, owner_spec: OwnerSpec, owner_id: int, name: str) -> str:
        if owner_spec.policy is FilenamePolicy.UNIQUE_SUFFIX:
            stem, suffix = os.path.splitext(name)
            name = f"{stem}-{int(self._clock() * 1000)}-{self._random_suffix()}{suffix}"
        return str(PurePosixPath(owner_spec.directory, str(owner_id), name))

    # ---- Uploads -------------------------------------------------------------------

    @contextmanager
    def batch(self, db: Session) -> Iterator[UploadBatch]:
        """
        Group uploads with the caller's database work.

            with store.batch(db) as batch:
                project = Project(...); db.add(project); db.flush()
                result = batch.accept(OwnerKind.PROJECT, project.id, files)

        On normal exit the session is committed. On any exception (a failed
        commit, a handler error, or cancellation) the session is rolled back and
        every file written by the batch is unlinked before the exception
        propagates.
        """
        upload_batch = UploadBatch(self, db)
        try:
            yield upload_batch
            db.commit()
        except BaseException:
            db.rollback()
            upload_batch.discard()
            raise
        upload_batch.finalize()

    def accept_uploads(self, db: Session, kind: OwnerKind, owner_id: int, files: Iterable[IncomingFile]) -> UploadResult:
        """Store `files` for an existing owner in a batch of their own and commit."""
        with self.batch(db) as upload_batch:
            return upload_batch.accept(kind, owner_id, files)

    def _write(self, relative_path: str, stream: BinaryIO) -> Path:
        # Temp file + rename in the target directory: readers never see a partial
        # file, and concurrent writers of one path end with one complete file.
        target = self.resolve(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as out:
                shutil.copyfileobj(stream, out)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return target

    def _unlink(self, path: Path) -> bool:
        """Remove a file; a missing file counts as removed. Failures are logged, not raised."""
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("File already absent path=%s", path)
            return True
        except OSError:
            logger.warning("Failed to delete file from disk path=%s", path, exc_info=True)
            return False
        logger.info("Deleted file from disk path=%s", path)
        return True

    # ---- Deletion ------------------------------------------------------------------

    def delete_owner_attachments(self, db: Session, kind: OwnerKind, owner_id: int) -> int:
        """
        Remove every attachment of one owner: files first, then rows.

        Does not commit; the caller deletes the owner in the same transaction.
        Returns the number of rows removed (0 on a repeated call).
        """
        owner_spec = OWNER_SPECS[kind]
        rows = list(db.scalars(select(owner_spec.attachment_model).where(owner_spec.owner_fk() == owner_id)).all())

        failed = 0
        for row in rows:
            if not self._unlink(self.resolve(row.file_path)):
                failed += 1

        db.execute(delete(owner_spec.attachment_model).where(owner_spec.owner_fk() == owner_id))
        if failed:
            logger.warning("%s of %s files for %s %s could not be unlinked", failed, len(rows), kind.value, owner_id)
        return len(rows)

    def delete_attachment(self, db: Session, kind: OwnerKind, attachment_id: int) -> None:
        """Remove a single attachment (file, then row). Does not commit."""
        owner_spec = OWNER_SPECS[kind]
        row = db.get(owner_spec.attachment_model, attachment_id)
        if row is None:
            raise AttachmentError(AttachmentErrorCode.ATTACHMENT_NOT_FOUND, f"{kind.value.capitalize()} file not found")
        self._unlink(self.resolve(row.file_path))
        db.delete(row)
        db.flush()


class UploadBatch:
    """Files written during one unit of work; see `AttachmentStore.batch`."""

    def __init__(self, store: AttachmentStore, db: Session) -> None:
        self._store = store
        self._db = db
        self._written: list[Path] = []
        self._obsolete: list[Path] = []

    def accept(self, kind: OwnerKind, owner_id: int, files: Iterable[IncomingFile]) -> UploadResult:
        owner_spec = OWNER_SPECS[kind]
        if self._db.get(owner_spec.owner_model, owner_id) is None:
            raise AttachmentError(AttachmentErrorCode.OWNER_NOT_FOUND, f"{kind.value.capitalize()} not found!")

        taken = set(
            self._db.scalars(
                select(owner_spec.attachment_model.original_name).where(owner_spec.owner_fk() == owner_id)
            ).all()
        )

        result = UploadResult()
        planned: list[tuple[str, IncomingFile]] = []
        for incoming in files:
            name = sanitize_filename(incoming.filename)
            if name in taken:
                result.skipped.append(FilenameCollision(name, f"File already exists for this {kind.value}."))
                continue
            taken.add(name)
            planned.append((name, incoming))

        for name, incoming in planned:
            # Another request may have stored the same name since the first lookup.
            if self._name_taken(owner_spec, owner_id, name):
                result.skipped.append(FilenameCollision(name, f"File already exists for this {kind.value}."))
                continue

            relative_path = self._store.target_path(owner_spec, owner_id, name)
            try:
                self._written.append(self._store._write(relative_path, incoming.stream))
            except OSError as exc:
                logger.error("Failed to write upload %s for %s %s", name, kind.value, owner_id)
                self.discard()
                raise AttachmentError(AttachmentErrorCode.DISK_WRITE_FAILED, f"Could not store file {name}") from exc

            row = owner_spec.attachment_model(file_path=relative_path, original_name=name, **{owner_spec.owner_column: owner_id})
            try:
                self._db.add(row)
                self._db.flush()
            except SQLAlchemyError as exc:
                logger.error("Failed to record upload %s for %s %s", name, kind.value, owner_id)
                self.discard()
                raise AttachmentError(
                    AttachmentErrorCode.RECORD_PERSIST_FAILED, f"Could not record file {name}"
                ) from exc
            result.accepted.append(row)

        logger.info(
            "Files uploaded to %s %s: accepted=%s skipped=%s",
            kind.value,
            owner_id,
            len(result.accepted),
            len(result.skipped),
        )
        return result

    def replace(self, kind: OwnerKind, attachment_id: int, incoming: IncomingFile) -> Any:
        """
        Overwrite-and-replace the file behind an existing attachment row.

        The new file is written (and the row updated) first; the previous file is
        unlinked only after the batch commits.
        """
        owner_spec = OWNER_SPECS[kind]
        row = self._db.get(owner_spec.attachment_model, attachment_id)
        if row is None:
            raise AttachmentError(AttachmentErrorCode.ATTACHMENT_NOT_FOUND, "File not found!")

        owner_id = getattr(row, owner_spec.owner_column)
        name = sanitize_filename(incoming.filename)
        if name != row.original_name and self._name_taken(owner_spec, owner_id, name):
            raise AttachmentError(
                AttachmentErrorCode.FILENAME_COLLISION, f"File already exists for this {kind.value}."
            )

        old_path = self._store.resolve(row.file_path)
        relative_path = self._store.target_path(owner_spec, owner_id, name)
        try:
            new_path = self._store._write(relative_path, incoming.stream)
        except OSError as exc:
            logger.error("Failed to write replacement for %s file %s", kind.value, attachment_id)
            self.discard()
            raise AttachmentError(AttachmentErrorCode.DISK_WRITE_FAILED, f"Could not store file {name}") from exc

        if new_path != old_path:
            self._written.append(new_path)
            self._obsolete.append(old_path)

        row.file_path = relative_path
        row.original_name = name
        try:
            self._db.flush()
        except SQLAlchemyError as exc:
            self.discard()
            raise AttachmentError(AttachmentErrorCode.RECORD_PERSIST_FAILED, f"Could not record file {name}") from exc

        logger.info("File updated for %s fileId=%s", kind.value, attachment_id)
        return row

    def _name_taken(self, owner_spec: OwnerSpec, owner_id: int, name: str) -> bool:
        stmt = (
            select(owner_spec.attachment_model.id)
            .where(owner_spec.owner_fk() == owner_id, owner_spec.attachment_model.original_name == name)
            .limit(1)
        )
        return self._db.execute(stmt).first() is not None

    def discard(self) -> None:
        """Compensating cleanup: unlink everything this batch wrote."""
        written, self._written = self._written, []
        self._obsolete = []
        for path in written:
            self._store._unlink(path)

    def finalize(self) -> None:
        """After commit: drop files that were replaced by this batch."""
        obsolete, self._obsolete = self._obsolete, []
        self._written = []
        for path in obsolete:
            self._store._unlink(path)
