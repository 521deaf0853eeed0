"""File manager endpoints: browse, edit, create, rename, move, delete and download."""
import asyncio
import logging
import os
from typing import Optional

import aiofiles
from fastapi import APIRouter, Depends, Form, Query
from fastapi.responses import Response, StreamingResponse
from starlette.background import BackgroundTask

from webftp.api.dependencies import UserContext, get_file_manager, require_csrf, require_user
from webftp.core.exceptions import BadGatewayError, BadRequestError, NotFoundError
from webftp.schemas import (
	DeleteResponse,
	FolderContentsResponse,
	FolderTreeResponse,
	OperationResponse,
)
from webftp.services.file_manager_service import (
	MSG_FILE_NOT_FOUND,
	MSG_FILE_PATH_REQUIRED,
	MSG_INVALID_PATH,
	FileManagerService,
)
from webftp.services.utils.types import OperationResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])

CHUNK_SIZE = 64 * 1024


def _raise_for_transfer(result: OperationResult) -> None:
	"""Binary endpoints cannot carry the JSON envelope, failures become HTTP errors."""
	if result.success:
		return
	if result.message in (MSG_INVALID_PATH, MSG_FILE_PATH_REQUIRED, "Path is required"):
		raise BadRequestError(result.message)
	if result.message == MSG_FILE_NOT_FOUND:
		raise NotFoundError(result.message)
	raise BadGatewayError(result.message)


@router.get(
	"/tree",
	response_model=FolderTreeResponse,
	response_model_exclude_none=True,
	summary="Folder tree below a path",
)
async def folder_tree(
	path: str = Query("/", description="Directory to expand"),
	user: UserContext = Depends(require_user),
	file_manager: FileManagerService = Depends(get_file_manager),
) -> dict:
	result = await file_manager.folder_tree(user.credentials, path)
	return result.to_dict()


@router.get(
	"/contents",
	response_model=FolderContentsResponse,
	response_model_exclude_none=True,
	summary="Folders and files inside a directory",
)
async def folder_contents(
	path: str = Query("/", description="Directory to list"),
	user: UserContext = Depends(require_user),
	file_manager: FileManagerService = Depends(get_file_manager),
) -> dict:
	result = await file_manager.folder_contents(user.credentials, path)
	return result.to_dict()


@router.get("/read", response_model=OperationResponse, response_model_exclude_none=True)
async def read_file(
	path: str = Query("", description="File to open in the editor"),
	user: UserContext = Depends(require_user),
	file_manager: FileManagerService = Depends(get_file_manager),
) -> dict:
	result = await file_manager.read_file(user.credentials, path)
	return result.to_dict()


@router.get("/image", summary="Raw image bytes for inline previews")
async def preview_image(
	path: str = Query("", description="Image path"),
	user: UserContext = Depends(require_user),
	file_manager: FileManagerService = Depends(get_file_manager),
) -> Response:
	result = await file_manager.preview_image(user.credentials, path)
	_raise_for_transfer(result)
	return Response(content=result.data["content"], media_type=result.data["media_type"])


@router.get("/download", summary="Download a file as an attachment")
async def download_file(
	path: str = Query("", description="File to download"),
	user: UserContext = Depends(require_user),
	file_manager: FileManagerService = Depends(get_file_manager),
):
	result = await file_manager.download(user.credentials, path)
	_raise_for_transfer(result)
	local_path = result.data["local_path"]
	filename = result.data["filename"] or "download"

	async def stream():
		try:
			async with aiofiles.open(local_path, "rb") as handle:
				while True:
					chunk = await handle.read(CHUNK_SIZE)
					if not chunk:
						break
					yield chunk
		except asyncio.CancelledError:
			logger.info("Download stream cancelled by client: %s", path)
			raise
		finally:
			file_manager.discard_download(local_path)

	headers = {
		"Content-Disposition": f'attachment; filename="{filename}"',
		"Content-Length": str(os.path.getsize(local_path)),
	}
	return StreamingResponse(
		stream(),
		media_type="application/octet-stream",
		headers=headers,
		background=BackgroundTask(file_manager.discard_download, local_path),
	)


@router.post("/write", response_model=OperationResponse, response_model_exclude_none=True)
async def write_file(
	path: str = Form(""),
	content: str = Form(""),
	user: UserContext = Depends(require_user),
	_: None = Depends(require_csrf),
	file_manager: FileManagerService = Depends(get_file_manager),
) -> dict:
	result = await file_manager.write_file(user.credentials, path, content)
	return result.to_dict()


@router.post("/create-file", response_model=OperationResponse, response_model_exclude_none=True)
async def create_file(
	path: str = Form("", description="Parent directory"),
	filename: str = Form(""),
	user: UserContext = Depends(require_user),
	_: None = Depends(require_csrf),
	file_manager: FileManagerService = Depends(get_file_manager),
) -> dict:
	result = await file_manager.create_file(user.credentials, path, filename)
	return result.to_dict()


@router.post("/create-folder", response_model=OperationResponse, response_model_exclude_none=True)
async def create_folder(
	path: str = Form("", description="Parent directory"),
	foldername: str = Form(""),
	user: UserContext = Depends(require_user),
	_: None = Depends(require_csrf),
	file_manager: FileManagerService = Depends(get_file_manager),
) -> dict:
	result = await file_manager.create_folder(user.credentials, path, foldername)
	return result.to_dict()


@router.post("/rename", response_model=OperationResponse, response_model_exclude_none=True)
async def rename(
	old_path: str = Form(""),
	new_name: str = Form(""),
	user: UserContext = Depends(require_user),
	_: None = Depends(require_csrf),
	file_manager: FileManagerService = Depends(get_file_manager),
) -> dict:
	result = await file_manager.rename(user.credentials, old_path, new_name)
	return result.to_dict()


@router.post("/move", response_model=OperationResponse, response_model_exclude_none=True)
async def move(
	source_path: str = Form(""),
	destination_path: str = Form("", description="Full target path"),
	user: UserContext = Depends(require_user),
	_: None = Depends(require_csrf),
	file_manager: FileManagerService = Depends(get_file_manager),
) -> dict:
	result = await file_manager.move(user.credentials, source_path, destination_path)
	return result.to_dict()


@router.post("/delete", response_model=DeleteResponse, response_model_exclude_none=True)
async def delete(
	path: Optional[str] = Form(None),
	paths: Optional[str] = Form(None, description="JSON array of paths"),
	user: UserContext = Depends(require_user),
	_: None = Depends(require_csrf),
	file_manager: FileManagerService = Depends(get_file_manager),
) -> dict:
	result = await file_manager.delete(user.credentials, path=path, paths=paths)
	return result.to_dict()
