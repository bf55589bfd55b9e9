"""Tests for archive extraction: zip-slip guard, special entries, ceilings."""

from __future__ import annotations

import io
import tarfile
import zipfile

import pytest

from appguard.application.extractor import allocate_work_dir, extract_archive
from appguard.core.exceptions import ExtractionError


def _all_files(root):
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())


def test_traversal_entry_is_dropped_and_rest_extracted(tmp_path, make_zip):
    archive = make_zip({
        "../../evil.php": "<?php system($_GET['c']);",
        "app.json": "{}",
        "src/index.php": "<?php echo 'hi';",
    })
    work = allocate_work_dir(tmp_path / "work")

    result = extract_archive(archive, work)

    assert result.extracted == 2
    assert result.rejected == ["../../evil.php"]
    assert [w.code for w in result.warnings] == ["entry_rejected"]
    assert not (tmp_path / "evil.php").exists()
    assert not (work.parent / "evil.php").exists()
    assert _all_files(work) == ["app.json", "src/index.php"]


@pytest.mark.parametrize("name", ["/etc/passwd", "C:/Windows/evil.php", "a/../../escape.txt"])
def test_absolute_and_escaping_names_rejected(tmp_path, make_zip, name):
    archive = make_zip({name: "x", "ok.txt": "fine"})
    work = allocate_work_dir(tmp_path / "work")
    result = extract_archive(archive, work)
    assert name in result.rejected
    assert _all_files(work) == ["ok.txt"]


@pytest.mark.parametrize("builder", ["make_zip", "make_tar"])
def test_entry_colliding_with_a_file_is_dropped(tmp_path, request, builder):
    archive = request.getfixturevalue(builder)({
        "pkg/a": "plain file",
        "pkg/a/b.php": "<?php system($_GET['c']);",
        "pkg/ok.php": "<?php echo 'ok';",
    })
    work = allocate_work_dir(tmp_path / "work")

    result = extract_archive(archive, work)

    assert result.extracted == 2
    assert result.rejected == ["pkg/a/b.php"]
    assert [(w.code, w.file) for w in result.warnings] == [("entry_rejected", "pkg/a/b.php")]
    assert result.root == work / "pkg"
    assert _all_files(work) == ["pkg/a", "pkg/ok.php"]


def test_every_entry_rejected_fails(tmp_path, make_zip):
    archive = make_zip({"../evil.php": "x", "../../other.php": "y"})
    with pytest.raises(ExtractionError) as exc:
        extract_archive(archive, allocate_work_dir(tmp_path / "work"))
    assert "no entries survived" in exc.value.message
    assert exc.value.details["rejected"] == ["../evil.php", "../../other.php"]


def test_tar_symlink_and_traversal_dropped(tmp_path):
    path = tmp_path / "pkg.tar.gz"
    with tarfile.open(path, "w:gz") as tar:
        link = tarfile.TarInfo("link.php")
        link.type = tarfile.SYMTYPE
        link.linkname = "/etc/passwd"
        tar.addfile(link)
        evil = tarfile.TarInfo("../evil.php")
        evil.size = 1
        tar.addfile(evil, io.BytesIO(b"x"))
        good = tarfile.TarInfo("src/ok.php")
        good.size = 5
        tar.addfile(good, io.BytesIO(b"<?php"))

    work = allocate_work_dir(tmp_path / "work")
    result = extract_archive(path, work)

    assert sorted(result.rejected) == ["../evil.php", "link.php"]
    assert _all_files(work) == ["src/ok.php"]
    assert not (work / "link.php").exists()


def test_zip_symlink_entry_dropped(tmp_path):
    path = tmp_path / "links.zip"
    with zipfile.ZipFile(path, "w") as zf:
        info = zipfile.ZipInfo("link")
        info.external_attr = (0o120777 << 16)
        zf.writestr(info, "/etc/passwd")
        zf.writestr("real.txt", "data")
    work = allocate_work_dir(tmp_path / "work")
    result = extract_archive(path, work)
    assert result.rejected == ["link"]
    assert _all_files(work) == ["real.txt"]


def test_size_ceiling_aborts(tmp_path, make_zip):
    archive = make_zip({"big.bin": b"\0" * 10_000})
    with pytest.raises(ExtractionError, match="ceiling"):
        extract_archive(archive, allocate_work_dir(tmp_path / "work"), max_total_bytes=1_000)


def test_corrupt_archive_fails(tmp_path):
    path = tmp_path / "broken.zip"
    path.write_bytes(b"PK\x03\x04 this is not really a zip")
    with pytest.raises(ExtractionError):
        extract_archive(path, allocate_work_dir(tmp_path / "work"))


def test_missing_archive_fails(tmp_path):
    with pytest.raises(ExtractionError, match="does not exist"):
        extract_archive(tmp_path / "nope.zip", allocate_work_dir(tmp_path / "work"))


def test_work_dirs_are_unique(tmp_path):
    dirs = {allocate_work_dir(tmp_path / "work") for _ in range(5)}
    assert len(dirs) == 5
    assert all(d.parent == tmp_path / "work" for d in dirs)


def test_single_wrapper_directory_becomes_root(tmp_path, make_tar):
    archive = make_tar({"crm-app/app.json": "{}", "crm-app/src/a.php": "<?php"})
    work = allocate_work_dir(tmp_path / "work")
    result = extract_archive(archive, work)
    assert result.root == work / "crm-app"
    assert result.work_dir == work
