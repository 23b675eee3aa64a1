"""Transactional updates of project files and central version files.

A batch moves through backup, mutation and validation. When the mutated
files are no longer well-formed the backups are copied back before the
batch returns.
"""

import codecs
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable
from xml.sax.saxutils import escape, unescape

from .errors import BackupError, NotFoundError, NugetBotError, RollbackError, ValidationError
from .logging import get_logger
from .manifest import CENTRAL_VERSION_ELEMENT, REFERENCE_ELEMENT, load_document
from .models import (
    BackupSet,
    BatchOutcome,
    BatchReport,
    ManifestLocation,
    UpdateCandidate,
    UpdateResult,
)

log = get_logger("updater")

BACKUP_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_INCLUDE_RE = re.compile(r"""\bInclude\s*=\s*(["'])(.*?)\1""", re.DOTALL)
_VERSION_RE = re.compile(r"""\bVersion\s*=\s*(["'])(.*?)\1""", re.DOTALL)
_ATTR_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def _element_re(name: str) -> re.Pattern:
    return re.compile(rf"<(?:[\w.-]+:)?{name}\b(?P<attrs>[^>]*?)/?>", re.DOTALL)


def backup_path_for(path: Path, timestamp: datetime) -> Path:
    """Sibling backup path: ``<stem>.backup.<YYYYMMDDHHmmss><suffix>``."""
    stamp = timestamp.strftime(BACKUP_TIMESTAMP_FORMAT)
    return path.with_name(f"{path.stem}.backup.{stamp}{path.suffix}")


_BOMS = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)
_XML_DECL_ENCODING_RE = re.compile(rb"""^\s*<\?xml[^>]*?\bencoding\s*=\s*["']([A-Za-z0-9._-]+)["']""")


def detect_encoding(raw: bytes) -> tuple[bytes, str]:
    """Find the byte order mark and codec of an XML document.

    The BOM wins, then a BOM-less UTF-16 signature, then the encoding
    named by the XML declaration. Defaults to UTF-8.
    """
    for bom, encoding in _BOMS:
        if raw.startswith(bom):
            return bom, encoding
    if raw.startswith(b"<\x00?\x00"):
        return b"", "utf-16-le"
    if raw.startswith(b"\x00<\x00?"):
        return b"", "utf-16-be"

    declared = _XML_DECL_ENCODING_RE.match(raw)
    if declared:
        name = declared.group(1).decode("ascii")
        try:
            codec = codecs.lookup(name).name
        except LookupError:
            log.warning("unknown_declared_encoding", encoding=name)
        else:
            # A 16/32-bit codec without a BOM cannot have an ASCII declaration.
            if not codec.startswith(("utf-16", "utf-32")):
                return b"", codec
    return b"", "utf-8"


def _read_text(path: Path) -> tuple[str, bytes, str]:
    # Decoding bytes directly keeps line endings byte-for-byte.
    raw = path.read_bytes()
    bom, encoding = detect_encoding(raw)
    return raw[len(bom):].decode(encoding), bom, encoding


def _write_text(path: Path, content: str, bom: bytes, encoding: str) -> None:
    path.write_bytes(bom + content.encode(encoding))


def set_package_version(content: str, element_name: str, package_id: str, version: str) -> str | None:
    """Rewrite the version attribute of one package entry in XML text.

    Only the attribute value changes; everything else in the document is
    preserved. A missing ``Version`` attribute is added after ``Include``.

    Returns:
        The updated text, or None if no entry for the package exists
    """
    comments = [m.span() for m in _COMMENT_RE.finditer(content)]
    new_value = escape(version, _ATTR_ENTITIES)

    for element in _element_re(element_name).finditer(content):
        if any(start <= element.start() < end for start, end in comments):
            continue

        attrs_start = element.start("attrs")
        attrs = element.group("attrs")
        include = _INCLUDE_RE.search(attrs)
        if not include or unescape(include.group(2)).strip().lower() != package_id.lower():
            continue

        existing = _VERSION_RE.search(attrs)
        if existing:
            start = attrs_start + existing.start(2)
            end = attrs_start + existing.end(2)
            return content[:start] + new_value + content[end:]

        insert_at = attrs_start + include.end()
        return content[:insert_at] + f' Version="{new_value}"' + content[insert_at:]

    return None


class PackageUpdater:
    """Applies version updates to the file targeted by a manifest location."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock

    def create_backup(self, location: ManifestLocation) -> BackupSet:
        """Copy the manifest, and the central file if used, next to the originals.

        An existing backup is never overwritten.

        Raises:
            BackupError: If a backup already exists or cannot be written.
        """
        timestamp = self.clock()
        planned = {path: backup_path_for(path, timestamp) for path in location.files}
        for backup in planned.values():
            if backup.exists():
                raise BackupError(f"Backup file already exists: {backup}")

        backups = BackupSet()
        try:
            for path, backup in planned.items():
                with open(path, "rb") as src, open(backup, "xb") as dst:
                    shutil.copyfileobj(src, dst)
                shutil.copystat(path, backup)
                backups.files[path] = backup
                log.info("backup_created", path=str(path), backup=str(backup))
        except OSError as e:
            for backup in backups.files.values():
                backup.unlink(missing_ok=True)
            raise BackupError(f"Failed to create backup of {path}: {e}") from e
        return backups

    def update_version(self, location: ManifestLocation, package_id: str, new_version: str) -> None:
        """Set the version of one package in the target file.

        Raises:
            NotFoundError: If the package is absent from the target file.
        """
        path = location.target_path
        element = CENTRAL_VERSION_ELEMENT if location.centrally_managed else REFERENCE_ELEMENT

        content, bom, encoding = _read_text(path)
        updated = set_package_version(content, element, package_id, new_version)
        if updated is None:
            raise NotFoundError(package_id, path)

        _write_text(path, updated, bom, encoding)
        log.info("package_version_updated", package=package_id, version=new_version, path=str(path))

    def check_document(self, path: Path) -> None:
        """Raise ValidationError unless the file exists and is well-formed XML."""
        if not path.is_file():
            raise ValidationError(f"File not found: {path}")
        try:
            load_document(path)
        except NugetBotError as e:
            raise ValidationError(str(e)) from e

    def validate(self, location: ManifestLocation) -> bool:
        """Check that every file of the location is still a well-formed document."""
        try:
            for path in location.files:
                self.check_document(path)
        except ValidationError as e:
            log.error("validation_failed", error=str(e))
            return False
        return True

    def restore_from_backup(self, backups: BackupSet) -> None:
        """Copy every backup over its original.

        Raises:
            RollbackError: If a backup is missing or cannot be copied.
        """
        for original, backup in backups.files.items():
            try:
                if not backup.is_file():
                    raise FileNotFoundError(f"Backup file not found: {backup}")
                shutil.copy2(backup, original)
            except OSError as e:
                raise RollbackError(f"Failed to restore {original} from {backup}: {e}") from e
        log.info("rollback_completed", files=[str(p) for p in backups.files])

    def _rollback(self, backups: BackupSet) -> tuple[BatchOutcome, str | None]:
        try:
            self.restore_from_backup(backups)
        except RollbackError as e:
            log.critical("rollback_failed", error=str(e))
            return BatchOutcome.ROLLBACK_FAILED, str(e)
        return BatchOutcome.ROLLED_BACK, None

    def apply(self, location: ManifestLocation, candidates: list[UpdateCandidate]) -> BatchReport:
        """Apply a batch of updates with backup, validation and rollback.

        Each candidate is applied independently; a failing candidate is
        recorded and the batch continues. Validation runs once at the end.
        An unexpected error stops the batch and rolls it back.

        Raises:
            BackupError: If backups cannot be created; no file is modified.
        """
        backups = self.create_backup(location)
        results: list[UpdateResult] = []

        try:
            for candidate in candidates:
                new_version = str(candidate.latest)
                result = UpdateResult(
                    package_id=candidate.package_id,
                    old_version=str(candidate.current_version),
                    new_version=new_version,
                    success=False,
                )
                results.append(result)
                try:
                    self.update_version(location, candidate.package_id, new_version)
                    result.success = True
                except (NugetBotError, OSError, UnicodeError) as e:
                    result.error = str(e)
                    log.warning("package_update_failed", package=candidate.package_id, error=str(e))
        except Exception as e:
            log.exception("batch_aborted", manifest=str(location.manifest_path))
            if results and not results[-1].success and results[-1].error is None:
                results[-1].error = str(e)
            outcome, error = self._rollback(backups)
            return BatchReport(
                location,
                results,
                outcome,
                backups,
                error=error or f"Update aborted, changes were rolled back: {e}",
            )

        if self.validate(location):
            log.info(
                "batch_committed",
                manifest=str(location.manifest_path),
                succeeded=sum(1 for r in results if r.success),
                total=len(results),
            )
            return BatchReport(location, results, BatchOutcome.COMMITTED, backups)

        outcome, error = self._rollback(backups)
        return BatchReport(
            location,
            results,
            outcome,
            backups,
            error=error or "Validation failed after update; changes were rolled back",
        )
