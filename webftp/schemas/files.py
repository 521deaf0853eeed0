"""Schemas for the file manager endpoints."""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class OperationResponse(BaseModel):
    """Envelope shared by every file manager response.

    Operation specific fields (``path``, ``content``, ``results``...) ride
    along as extra attributes.
    """

    model_config = ConfigDict(extra="allow")

    success: bool
    message: str = ""


class DirectoryEntryModel(BaseModel):
    """One file or folder as rendered by the browser."""

    name: str
    path: str
    real_path: str
    type: Literal["file", "directory"]
    permissions: str
    modified: str = "-"
    is_symlink: bool = False
    symlink_target: Optional[str] = None
    size: Optional[int] = None
    extension: Optional[str] = None
    children: Optional[List["DirectoryEntryModel"]] = None


class FolderTreeResponse(OperationResponse):
    path: Optional[str] = None
    tree: List[DirectoryEntryModel] = Field(default_factory=list)


class FolderContentsResponse(OperationResponse):
    path: Optional[str] = None
    folders: List[DirectoryEntryModel] = Field(default_factory=list)
    files: List[DirectoryEntryModel] = Field(default_factory=list)


class DeleteItemResult(BaseModel):
    path: str
    success: bool
    type: Literal["file", "directory"]
    message: Optional[str] = None


class DeleteResponse(OperationResponse):
    results: List[DeleteItemResult] = Field(default_factory=list)
    successCount: int = 0
    failedCount: int = 0


DirectoryEntryModel.model_rebuild()
