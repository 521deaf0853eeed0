"""Unit tests for result types and remote path helpers."""

import pytest

from webftp.services.utils.ftps_helpers import (
    file_extension,
    format_megabytes,
    join_remote_path,
    remote_basename,
)
from webftp.services.utils.types import Credentials, DirectoryEntry, EntryType, OperationResult


def _file(name: str = "a.TXT") -> DirectoryEntry:
    return DirectoryEntry(
        name=name,
        path=f"/{name}",
        real_path=f"/{name}",
        type=EntryType.FILE,
        permissions="-rw-r--r--",
        modified="01/01/2024",
        size=42,
    )


class TestDirectoryEntry:
    def test_file_dict_has_size_and_extension(self):
        payload = _file().to_dict()

        assert payload["type"] == "file"
        assert payload["size"] == 42
        assert payload["extension"] == "txt"
        assert "children" not in payload
        assert "symlink_target" not in payload

    def test_directory_dict_has_children_only_when_set(self):
        folder = DirectoryEntry(name="d", path="/d", real_path="/d", type=EntryType.DIRECTORY)
        assert "children" not in folder.to_dict()
        assert "size" not in folder.to_dict()

        folder.children = []
        assert folder.to_dict()["children"] == []

    def test_directory_has_no_extension(self):
        folder = DirectoryEntry(name="v1.2", path="/v1.2", real_path="/v1.2", type=EntryType.DIRECTORY)
        assert folder.extension == ""


class TestOperationResult:
    """Tests for OperationResult."""

    def test_ok_flattens_data(self):
        result = OperationResult.ok("done", path="/x", count=2)

        assert result
        assert result.to_dict() == {"success": True, "message": "done", "path": "/x", "count": 2}
        assert result["path"] == "/x"
        assert result.get("missing", "fallback") == "fallback"

    def test_empty_message_kept_in_envelope(self):
        assert OperationResult.ok(path="/").to_dict() == {"success": True, "message": "", "path": "/"}

    def test_fail_is_falsy(self):
        result = OperationResult.fail("nope")
        assert not result
        assert result.to_dict() == {"success": False, "message": "nope"}

    def test_entries_are_serialized(self):
        result = OperationResult.ok(files=[_file()])
        assert result.to_dict()["files"][0]["name"] == "a.TXT"


class TestCredentials:
    def test_password_hidden_from_repr(self):
        creds = Credentials(host="h", port=21, username="u", password="secret")
        assert "secret" not in repr(creds)


class TestHelpers:
    @pytest.mark.parametrize(
        "size, precision, expected",
        [
            (int(6.5 * 1024 * 1024), 2, "6.5"),
            (5 * 1024 * 1024, 0, "5"),
            (1536 * 1024, 2, "1.5"),
            (1234567, 2, "1.18"),
        ],
    )
    def test_format_megabytes(self, size, precision, expected):
        assert format_megabytes(size, precision) == expected

    def test_join_remote_path(self):
        assert join_remote_path("/", "a.txt") == "/a.txt"
        assert join_remote_path("/docs/", "a.txt") == "/docs/a.txt"

    def test_remote_basename(self):
        assert remote_basename("/docs/readme.txt") == "readme.txt"
        assert remote_basename("/docs/") == "docs"

    def test_file_extension(self):
        assert file_extension("/a/b.Tar.GZ") == "gz"
        assert file_extension("Makefile") == ""
        assert file_extension("/v1.2/Makefile") == ""
