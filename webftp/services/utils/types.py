# webftp/services/utils/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class EntryType(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class Credentials:
    """FTP login material for one user session."""

    host: str
    port: int
    username: str
    password: str = field(repr=False)
    use_tls: bool = False
    passive_mode: bool = True


@dataclass
class DirectoryEntry:
    name: str
    path: str
    real_path: str
    type: EntryType
    permissions: str = ""
    modified: str = "-"
    size: int = 0
    is_symlink: bool = False
    symlink_target: Optional[str] = None
    children: Optional[list["DirectoryEntry"]] = None

    @property
    def is_directory(self) -> bool:
        return self.type is EntryType.DIRECTORY

    @property
    def extension(self) -> str:
        if self.is_directory or "." not in self.name:
            return ""
        return self.name.rsplit(".", 1)[-1].lower()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "path": self.path,
            "real_path": self.real_path,
            "type": self.type.value,
            "permissions": self.permissions,
            "modified": self.modified,
            "is_symlink": self.is_symlink,
        }
        if self.symlink_target is not None:
            payload["symlink_target"] = self.symlink_target
        if self.is_directory:
            if self.children is not None:
                payload["children"] = [child.to_dict() for child in self.children]
        else:
            payload["size"] = self.size
            payload["extension"] = self.extension
        return payload


@dataclass
class DirectoryListing:
    folders: list[DirectoryEntry] = field(default_factory=list)
    files: list[DirectoryEntry] = field(default_factory=list)

    def combined(self) -> list[DirectoryEntry]:
        return [*self.folders, *self.files]


def _serialize(value: Any) -> Any:
    if isinstance(value, DirectoryEntry):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    return value


@dataclass
class OperationResult:
    """Outcome of one gateway operation; ``data`` is flattened by ``to_dict``."""

    success: bool
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str = "", **data: Any) -> "OperationResult":
        return cls(True, message, data)

    @classmethod
    def fail(cls, message: str, **data: Any) -> "OperationResult":
        return cls(False, message, data)

    def __bool__(self) -> bool:
        return self.success

    def __getitem__(self, key: str) -> Any:
        return self.to_dict()[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.to_dict().get(key, default)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "message": self.message}
        for key, value in self.data.items():
            payload[key] = _serialize(value)
        return payload
