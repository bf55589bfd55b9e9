"""File discovery for extracted packages.

One streaming walker serves every analyzer: the tree is traversed once,
each regular file is classified (extension, size, text or binary) and the
resulting :class:`SourceFile` list is shared by the rule scanners and the AI
analyzer.

Excluded Directories
--------------------
- Version control: .git, .hg, .svn
- Dependencies: vendor, node_modules, bower_components
- OS junk: __MACOSX

Symlinks are never followed and never yielded.

Examples
--------
Walk an extracted package:
    >>> files = collect_files(Path("/tmp/scan-1234/package"))
    >>> [f.relpath for f in files if f.is_text][:2]
    ['app.json', 'src/Controller.php']

Check if directory should be excluded:
    >>> _dir_is_excluded("node_modules")
    True

See Also
--------
appguard.application.extractor : Produces the trees walked here
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Set

from appguard.core.logging_config import get_logger

logger = get_logger(__name__)

# Extensions treated as text without sniffing
TEXT_EXTS: Set[str] = {
    ".php", ".phtml", ".inc", ".js", ".mjs", ".cjs", ".ts", ".tsx", ".jsx",
    ".vue", ".py", ".rb", ".java", ".cs", ".go", ".sh", ".bash",
    ".json", ".yaml", ".yml", ".xml", ".html", ".htm", ".css", ".scss",
    ".md", ".txt", ".env", ".ini", ".conf", ".sql", ".twig",
}

# Extensions sent to the AI analyzer
CODE_EXTS: Set[str] = {".php", ".js", ".ts", ".vue", ".py", ".rb", ".java", ".cs"}

EXCLUDED_DIRS_EXACT: Set[str] = {
    ".git",
    ".hg",
    ".svn",
    "vendor",
    "node_modules",
    "bower_components",
    "__MACOSX",
    "__pycache__",
}

SNIFF_BYTES = 8192


@dataclass(frozen=True)
class SourceFile:
    path: Path
    relpath: str
    size: int
    extension: str
    is_text: bool

    @property
    def is_code(self) -> bool:
        return self.extension in CODE_EXTS

    def read_text(self) -> str:
        return self.path.read_text(encoding="utf-8", errors="replace")


def _dir_is_excluded(dirname: str) -> bool:
    """Check if a directory should be skipped.

    Parameters
    ----------
    dirname : str
        Directory name (basename, not full path) to check.

    Returns
    -------
    bool
        True if directory should be excluded, False otherwise.
    """
    return dirname in EXCLUDED_DIRS_EXACT


def _looks_like_text(path: Path, extension: str) -> bool:
    if extension in TEXT_EXTS:
        return True
    try:
        with open(path, "rb") as fh:
            head = fh.read(SNIFF_BYTES)
    except OSError as e:
        logger.warning("Cannot read %s for text sniffing: %s", path, e)
        return False
    return b"\x00" not in head


def walk_files(root: Path) -> Iterator[SourceFile]:
    """Yield every regular file under ``root`` once, in a stable order.

    Parameters
    ----------
    root : Path
        Root directory of the extracted package.

    Yields
    ------
    SourceFile
        Classified file entry. Relative paths always use ``/``.
    """
    root = Path(root)
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        dirnames[:] = sorted(d for d in dirnames if not _dir_is_excluded(d))
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if path.is_symlink() or not path.is_file():
                continue
            extension = path.suffix.lower()
            try:
                size = path.stat().st_size
            except OSError as e:
                logger.warning("Cannot stat %s: %s", path, e)
                continue
            yield SourceFile(
                path=path,
                relpath=path.relative_to(root).as_posix(),
                size=size,
                extension=extension,
                is_text=_looks_like_text(path, extension),
            )


def collect_files(root: Path) -> List[SourceFile]:
    """Materialise one walk of ``root`` for sharing between analyzers."""
    files = list(walk_files(root))
    logger.debug("Discovered %d files under %s", len(files), root)
    return files


def find_manifest(files: List[SourceFile], name: str) -> Optional[SourceFile]:
    """Return the shallowest file called ``name``, preferring the package root."""
    candidates = [f for f in files if f.path.name == name]
    if not candidates:
        return None
    return min(candidates, key=lambda f: (f.relpath.count("/"), f.relpath))


__all__ = [
    "SourceFile",
    "TEXT_EXTS",
    "CODE_EXTS",
    "walk_files",
    "collect_files",
    "find_manifest",
]
