"""Tests for archive extraction."""

import os
import sys
import zipfile

import pytest
from conftest import make_tar_gz, make_zip

from vaporvault.core.archive import ArchiveExtractor
from vaporvault.exceptions import ExtractionError
from vaporvault.infra.filesystem import FileSystem


@pytest.fixture
def extractor() -> ArchiveExtractor:
    return ArchiveExtractor(FileSystem())


@pytest.mark.asyncio
async def test_zip_extracts_nested_entries(tmp_path, extractor):
    archive = make_zip(
        tmp_path / "steamcmd.zip",
        {"steamcmd.exe": b"MZ", "package/steam_cmd_win32.manifest": b"manifest"},
    )
    target = tmp_path / "install"

    await extractor.extract(str(archive), str(target))

    assert (target / "steamcmd.exe").read_bytes() == b"MZ"
    assert (target / "package" / "steam_cmd_win32.manifest").read_bytes() == b"manifest"


@pytest.mark.asyncio
async def test_tar_gz_creates_directories(tmp_path, extractor):
    archive = make_tar_gz(
        tmp_path / "steamcmd_linux.tar.gz",
        {"linux32/steamcmd": b"\x7fELF", "steamcmd.sh": b"#!/bin/sh\n"},
        directories=("linux32", "empty"),
    )
    target = tmp_path / "install"

    await extractor.extract(str(archive), str(target))

    assert (target / "linux32" / "steamcmd").read_bytes() == b"\x7fELF"
    assert (target / "steamcmd.sh").exists()
    assert (target / "empty").is_dir()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
@pytest.mark.asyncio
async def test_tar_gz_keeps_executable_bits(tmp_path, extractor):
    archive = make_tar_gz(
        tmp_path / "steamcmd_linux.tar.gz",
        {"steamcmd.sh": b"#!/bin/sh\n", "README": b"text"},
        modes={"steamcmd.sh": 0o755},
    )
    target = tmp_path / "install"

    await extractor.extract(str(archive), str(target))

    assert os.access(target / "steamcmd.sh", os.X_OK)
    assert not os.access(target / "README", os.X_OK)


@pytest.mark.asyncio
async def test_unsupported_format(tmp_path, extractor):
    archive = tmp_path / "steamcmd.7z"
    archive.write_bytes(b"7z")

    with pytest.raises(ExtractionError, match="Unsupported archive format"):
        await extractor.extract(str(archive), str(tmp_path / "install"))


@pytest.mark.asyncio
async def test_entry_outside_destination_is_rejected(tmp_path, extractor):
    archive = tmp_path / "steamcmd.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("../escaped.txt", b"nope")

    with pytest.raises(ExtractionError, match="outside the install directory"):
        await extractor.extract(str(archive), str(tmp_path / "install"))

    assert not (tmp_path / "escaped.txt").exists()


@pytest.mark.asyncio
async def test_corrupt_zip_raises_extraction_error(tmp_path, extractor):
    archive = tmp_path / "steamcmd.zip"
    archive.write_bytes(b"PK\x03\x04 not really a zip")

    with pytest.raises(ExtractionError, match="steamcmd.zip") as exc_info:
        await extractor.extract(str(archive), str(tmp_path / "install"))

    assert isinstance(exc_info.value.__cause__, zipfile.BadZipFile)
