"""Shared test fixtures for AppGuard tests."""

from __future__ import annotations

import io
import json
import tarfile
import time
import zipfile
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest

from appguard.application.collector import FindingCollector
from appguard.application.file import collect_files
from appguard.config import Config
from appguard.core.exceptions import AiTransportError
from appguard.core.models.schema import (
    Finding,
    InstalledPackage,
    Package,
    ScanContext,
    TeamInfo,
)
from appguard.infra.analyzers.base import ScanTarget
from appguard.infra.db.connection import get_session_factory
from appguard.infra.db.seed import seed_database
from appguard.infra.registry import SqlPackageRegistry

Content = Union[str, bytes]

CLEAN_ARCHIVE_FILES: Dict[str, Content] = {
    "notes/app.json": json.dumps({"name": "Notes", "permissions": []}),
    "notes/src/index.php": "<?php\necho 'hello';\n",
    "notes/src/app.js": "console.log('hi');\n",
}


def write_zip(path: Path, files: Dict[str, Content]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return path


def write_tar(path: Path, files: Dict[str, Content], mode: str = "w:gz") -> Path:
    with tarfile.open(path, mode) as tar:
        for name, content in files.items():
            data = content.encode("utf-8") if isinstance(content, str) else content
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


@pytest.fixture
def make_zip(tmp_path) -> Callable[..., Path]:
    """Build a zip archive from a ``{name: content}`` mapping."""

    def _make(files: Dict[str, Content], name: str = "package.zip") -> Path:
        return write_zip(tmp_path / name, files)

    return _make


@pytest.fixture
def make_tar(tmp_path) -> Callable[..., Path]:
    def _make(files: Dict[str, Content], name: str = "package.tar.gz") -> Path:
        return write_tar(tmp_path / name, files)

    return _make


@pytest.fixture
def make_tree(tmp_path) -> Callable[[Dict[str, Content]], Path]:
    """Write files under a fresh directory, as if already extracted."""

    def _make(files: Dict[str, Content]) -> Path:
        root = tmp_path / "tree"
        for name, content in files.items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        root.mkdir(exist_ok=True)
        return root

    return _make


@pytest.fixture
def make_target(make_tree) -> Callable[..., ScanTarget]:
    def _make(
        files: Dict[str, Content],
        package: Optional[Package] = None,
        context: Optional[ScanContext] = None,
    ) -> ScanTarget:
        root = make_tree(files)
        return ScanTarget(
            root=root,
            files=tuple(collect_files(root)),
            package=package or Package(name="Test App"),
            context=context or ScanContext(),
        )

    return _make


@pytest.fixture
def collector() -> FindingCollector:
    return FindingCollector()


def make_finding(
    type: str = "xss",
    severity: str = "medium",
    snippet: Optional[str] = None,
    file: str = "src/app.php",
    **kwargs,
) -> Finding:
    return Finding(
        type=type,
        severity=severity,
        description=f"{type} finding",
        file=file,
        snippet=snippet,
        **kwargs,
    )


@pytest.fixture
def team_context() -> ScanContext:
    return ScanContext(
        tenant_id="acme",
        team=TeamInfo(id=1, name="Acme", tenant_id="acme", tier="free", member_count=4),
        installed_packages=(
            InstalledPackage(name="CRM", type="laravel_module", version="2.1.0"),
        ),
    )


@pytest.fixture
def db_url(tmp_path) -> str:
    url = f"sqlite:///{(tmp_path / 'appguard.db').as_posix()}"
    seed_database(url)
    return url


@pytest.fixture
def session_factory(db_url):
    return get_session_factory(db_url)


@pytest.fixture
def registry(session_factory) -> SqlPackageRegistry:
    return SqlPackageRegistry(session_factory)


@pytest.fixture
def config(tmp_path, db_url) -> Config:
    cfg = Config()
    cfg.scanner.work_dir = str(tmp_path / "work")
    cfg.scanner.file_timeout_s = 2.0
    cfg.ai.timeout_s = 0.5
    cfg.ai.narrative_timeout_s = 0.5
    cfg.database.url = db_url
    return cfg


class TimeoutClient:
    """Every call fails the way a transport timeout does."""

    def __init__(self):
        self.calls: List[str] = []

    def complete(self, prompt: str, max_tokens: int, timeout: float) -> str:
        self.calls.append(prompt)
        raise AiTransportError(f"completion timed out after {timeout}s")


class HangingClient:
    """Blocks past any sensible deadline."""

    def __init__(self, delay: float = 3.0):
        self.delay = delay

    def complete(self, prompt: str, max_tokens: int, timeout: float) -> str:
        time.sleep(self.delay)
        return "{}"


class StaticClient:
    """Returns the same text for every prompt."""

    def __init__(self, text: str):
        self.text = text
        self.prompts: List[str] = []

    def complete(self, prompt: str, max_tokens: int, timeout: float) -> str:
        self.prompts.append(prompt)
        return self.text


def json_reply(payload: dict, prefix: str = "Here is my analysis:\n") -> str:
    return prefix + json.dumps(payload) + "\nLet me know if you need more."
