"""Unit tests for the local file system port."""

import os

import pytest

from tdd_rag.filesystem import FileStat, LocalFileSystem, sha256_checksum


class TestLocalFileSystem:
    @pytest.mark.asyncio
    async def test_read_stat_exists(self, tmp_path):
        path = tmp_path / "a.js"
        path.write_bytes(b"const a = 1;\n")
        os.utime(path, (1234.0, 1234.0))
        fs = LocalFileSystem()

        assert await fs.read_file(str(path)) == b"const a = 1;\n"
        assert await fs.stat(str(path)) == FileStat(mtime=1234.0, size=13)
        assert await fs.exists(str(path))
        assert not await fs.exists(str(tmp_path))

    @pytest.mark.asyncio
    async def test_read_text_replaces_invalid_bytes(self, tmp_path):
        path = tmp_path / "bad.py"
        path.write_bytes(b"x = '\xff'\n")

        assert await LocalFileSystem().read_text(str(path)) == "x = '�'\n"

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await LocalFileSystem().stat(str(tmp_path / "missing.js"))


def test_sha256_checksum():
    assert sha256_checksum(b"") == (
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )
    assert sha256_checksum(b"a") != sha256_checksum(b"b")
