"""Safe extraction of untrusted package archives.

Every scan gets its own uniquely named working directory. Archive entries
are written one by one after a path check, so nothing can land outside that
directory:

- entries with absolute paths, drive letters or ``..`` escapes are dropped
  and reported as ``entry_rejected`` warnings (zip-slip guard);
- symlinks, hard links, devices and FIFOs are dropped;
- a running byte count enforces a ceiling on the total extracted size.

Extraction fails with :class:`ExtractionError` only when the archive cannot
be read at all, exceeds the size ceiling, or no file survives the guard.
Deleting the working directory is the result writer's job, not this
module's.

Examples
--------
>>> work = allocate_work_dir("storage/temp_scans")
>>> result = extract_archive(Path("upload.zip"), work, max_total_bytes=50_000_000)
>>> result.root.is_dir()
True
"""
from __future__ import annotations

import re
import stat
import tarfile
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from appguard.core.exceptions import ExtractionError
from appguard.core.logging_config import get_logger
from appguard.core.models.schema import ScanWarning

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024
_DRIVE_LETTER = re.compile(r"^[A-Za-z]:")


@dataclass
class ExtractResult:
    work_dir: Path
    root: Path
    extracted: int = 0
    rejected: List[str] = field(default_factory=list)
    warnings: List[ScanWarning] = field(default_factory=list)


class _ByteBudget:
    def __init__(self, archive: str, limit: Optional[int]):
        self.archive = archive
        self.limit = limit
        self.used = 0

    def consume(self, count: int) -> None:
        self.used += count
        if self.limit is not None and self.used > self.limit:
            raise ExtractionError(
                self.archive,
                f"extracted size exceeds the {self.limit} byte ceiling",
                {"limit": self.limit},
            )


def allocate_work_dir(base: Union[str, Path]) -> Path:
    """Create a fresh, uniquely named directory under ``base``."""
    base = Path(base)
    base.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix="scan-", dir=base))


def _is_within_directory(base_dir: Path, target: Path) -> bool:
    try:
        target.resolve().relative_to(base_dir.resolve())
        return True
    except ValueError:
        return False


def _safe_target(work_dir: Path, name: str) -> Optional[Path]:
    """Map an archive entry name to a path inside ``work_dir`` or None."""
    norm = name.replace("\\", "/")
    if not norm or norm.startswith("/") or _DRIVE_LETTER.match(norm):
        return None
    target = work_dir / norm
    if not _is_within_directory(work_dir, target) or target.resolve() == work_dir.resolve():
        return None
    return target


def _open_target(target: Path) -> BinaryIO:
    target.parent.mkdir(parents=True, exist_ok=True)
    return open(target, "wb")


def _copy_limited(src: BinaryIO, dst: BinaryIO, budget: _ByteBudget) -> None:
    while True:
        chunk = src.read(CHUNK_SIZE)
        if not chunk:
            break
        budget.consume(len(chunk))
        dst.write(chunk)


def _reject(result: ExtractResult, name: str, reason: str) -> None:
    result.rejected.append(name)
    result.warnings.append(
        ScanWarning(stage="extractor", code="entry_rejected", message=reason, file=name)
    )
    logger.warning("Dropped archive entry %r: %s", name, reason)


def _writable_target(result: ExtractResult, name: str, target: Path) -> Optional[BinaryIO]:
    """Open ``target`` for writing; an entry that collides with another is dropped."""
    try:
        return _open_target(target)
    except OSError as e:
        _reject(result, name, f"cannot be written: {e.strerror or e}")
        return None


def _extract_zip(archive: Path, work_dir: Path, result: ExtractResult, budget: _ByteBudget) -> None:
    with zipfile.ZipFile(archive, "r") as zf:
        for member in zf.infolist():
            mode = (member.external_attr >> 16) & 0o170000
            if member.is_dir():
                continue
            if mode and not stat.S_ISREG(mode):
                _reject(result, member.filename, "special file (link or device) dropped")
                continue
            target = _safe_target(work_dir, member.filename)
            if target is None:
                _reject(result, member.filename, "path escapes the extraction directory")
                continue
            dst = _writable_target(result, member.filename, target)
            if dst is None:
                continue
            with dst, zf.open(member, "r") as src:
                _copy_limited(src, dst, budget)
            result.extracted += 1


def _extract_tar(archive: Path, work_dir: Path, result: ExtractResult, budget: _ByteBudget) -> None:
    with tarfile.open(archive, "r:*") as tar:
        for member in tar:
            if member.isdir():
                continue
            if not member.isfile():
                _reject(result, member.name, "special file (link or device) dropped")
                continue
            target = _safe_target(work_dir, member.name)
            if target is None:
                _reject(result, member.name, "path escapes the extraction directory")
                continue
            dst = _writable_target(result, member.name, target)
            if dst is None:
                continue
            with dst, tar.extractfile(member) as src:
                _copy_limited(src, dst, budget)
            result.extracted += 1


def _guess_extracted_root(work_dir: Path) -> Path:
    """Return the single top-level directory if the archive wrapped everything in one."""
    entries = [p for p in work_dir.iterdir() if p.name not in {".DS_Store", "__MACOSX"}]
    top_dirs = [p for p in entries if p.is_dir()]
    top_files = [p for p in entries if p.is_file()]
    if len(top_dirs) == 1 and not top_files:
        return top_dirs[0]
    return work_dir


def extract_archive(
    archive: Union[str, Path],
    work_dir: Path,
    max_total_bytes: Optional[int] = None,
) -> ExtractResult:
    """Extract a zip or tar archive into ``work_dir``.

    Parameters
    ----------
    archive : str or Path
        Untrusted archive to unpack.
    work_dir : Path
        Empty, scan-local directory from :func:`allocate_work_dir`.
    max_total_bytes : int, optional
        Ceiling on the sum of extracted file sizes.

    Returns
    -------
    ExtractResult
        Working directory, package root and the list of rejected entries.

    Raises
    ------
    ExtractionError
        Archive unreadable or unsupported, size ceiling exceeded, or no
        file survived the path guard.
    """
    archive = Path(archive)
    name = str(archive)
    if not archive.is_file():
        raise ExtractionError(name, "archive does not exist")

    work_dir = Path(work_dir)
    result = ExtractResult(work_dir=work_dir, root=work_dir)
    budget = _ByteBudget(name, max_total_bytes)

    try:
        if zipfile.is_zipfile(archive):
            _extract_zip(archive, work_dir, result, budget)
        elif tarfile.is_tarfile(archive):
            _extract_tar(archive, work_dir, result, budget)
        else:
            raise ExtractionError(name, "archive is neither a zip nor a tar file")
    except (zipfile.BadZipFile, tarfile.TarError, EOFError, RuntimeError, OSError) as e:
        raise ExtractionError(name, f"archive is corrupt or unreadable: {e}") from e

    if result.extracted == 0:
        raise ExtractionError(
            name,
            "no entries survived extraction",
            {"rejected": list(result.rejected)},
        )

    result.root = _guess_extracted_root(work_dir)
    logger.info(
        "Extracted %d files (%d bytes, %d rejected) from %s",
        result.extracted, budget.used, len(result.rejected), archive.name,
    )
    return result


__all__ = ["ExtractResult", "allocate_work_dir", "extract_archive"]
