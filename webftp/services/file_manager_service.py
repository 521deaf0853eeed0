"""
Async file manager facade used by the API routes.

Every call validates its input, then opens one FTP connection in a worker
thread, performs a single logical operation and closes the connection
before the result is returned.
"""

import asyncio
import base64
import contextlib
import json
import logging
import os
import posixpath
import tempfile
from typing import Callable, Optional, TypeVar

from webftp.core.config import EditorConfig, FtpConfig
from webftp.core.logging import FtpOperationLogger
from webftp.core.metrics import metrics
from webftp.core.security import PathSanitizer
from webftp.services.ftp_connection import MSG_CONNECTED
from webftp.services.ftp_operations import FtpOperationsGateway
from webftp.services.ftp_session import run_with_connection
from webftp.services.utils.ftps_helpers import (
	file_extension,
	format_megabytes,
	join_remote_path,
	remote_basename,
)
from webftp.services.utils.types import Credentials, OperationResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

MSG_INVALID_PATH = "Invalid path"
MSG_FOLDER_NOT_FOUND = "Folder not found"
MSG_FILE_NOT_FOUND = "File not found"
MSG_FILE_PATH_REQUIRED = "File path required"
MSG_READ_FAILED = "Could not read file"
MSG_NOT_EDITABLE = "File type not editable"
MSG_SAVED = "File saved successfully"

IMAGE_MIME_TYPES = {
	"png": "image/png",
	"jpg": "image/jpeg",
	"jpeg": "image/jpeg",
	"gif": "image/gif",
	"svg": "image/svg+xml",
	"webp": "image/webp",
	"bmp": "image/bmp",
	"ico": "image/x-icon",
	"tiff": "image/tiff",
	"tif": "image/tiff",
}


class FileManagerService:
	def __init__(
		self,
		ftp_config: FtpConfig,
		editor_config: EditorConfig,
		operation_logger: Optional[FtpOperationLogger] = None,
		*,
		max_paths_length: int = 10000,
	):
		self._ftp_config = ftp_config
		self._editor = editor_config
		self._log = operation_logger or FtpOperationLogger()
		self._max_paths_length = max_paths_length
		self._editable = {ext.lower() for ext in editor_config.editable_extensions}
		self._previewable = {ext.lower() for ext in editor_config.preview_extensions}

	@property
	def ftp_config(self) -> FtpConfig:
		return self._ftp_config

	# -------------------------
	# helpers
	# -------------------------
	async def _run(
		self,
		operation: str,
		credentials: Credentials,
		callback: Callable[[FtpOperationsGateway], T],
	):
		def _timed():
			with metrics.timer(f"ftp.{operation}") as timer:
				result = run_with_connection(credentials, callback, self._ftp_config, self._log)
				if isinstance(result, OperationResult) and not result.success:
					timer.fail()
				return result

		return await asyncio.to_thread(_timed)

	@staticmethod
	def _sanitize(path: Optional[str]) -> Optional[str]:
		return PathSanitizer.sanitize(path)

	def is_editable(self, path: str) -> bool:
		return file_extension(path) in self._editable

	def is_previewable(self, path: str) -> bool:
		return file_extension(path) in self._previewable

	def server_credentials(self, username: str, password: str) -> Credentials:
		"""Credentials for the configured server with the submitted login."""
		server = self._ftp_config.server
		return Credentials(
			host=server.host,
			port=server.port,
			username=username,
			password=password,
			use_tls=server.use_ssl,
			passive_mode=server.passive_mode,
		)

	# -------------------------
	# authentication probe
	# -------------------------
	async def verify_credentials(self, credentials: Credentials) -> OperationResult:
		"""Connect once to check the login, then disconnect."""
		return await self._run("login", credentials, lambda operations: OperationResult.ok(MSG_CONNECTED))

	# -------------------------
	# browsing
	# -------------------------
	async def folder_tree(self, credentials: Credentials, path: str = "/") -> OperationResult:
		clean = self._sanitize(path or "/")
		if clean is None:
			return OperationResult.fail(MSG_INVALID_PATH)

		def _tree(operations: FtpOperationsGateway) -> OperationResult:
			return OperationResult.ok(tree=operations.get_tree(clean), path=clean)

		return await self._run("tree", credentials, _tree)

	async def folder_contents(self, credentials: Credentials, path: str = "/") -> OperationResult:
		clean = self._sanitize(path or "/")
		if clean is None:
			return OperationResult.fail(MSG_INVALID_PATH)

		def _contents(operations: FtpOperationsGateway) -> OperationResult:
			listing = operations.list_directory(clean)
			if not listing.success:
				logger.debug("Folder %s could not be listed: %s", clean, listing.message)
				return OperationResult.fail(MSG_FOLDER_NOT_FOUND, path=clean)
			return OperationResult.ok(
				path=clean,
				folders=listing.data["folders"],
				files=listing.data["files"],
			)

		return await self._run("contents", credentials, _contents)

	# -------------------------
	# editor
	# -------------------------
	async def read_file(self, credentials: Credentials, path: str) -> OperationResult:
		if not path:
			return OperationResult.fail(MSG_FILE_PATH_REQUIRED)
		clean = self._sanitize(path)
		if clean is None:
			return OperationResult.fail(MSG_INVALID_PATH)
		max_size = self._editor.max_file_size

		def _read(operations: FtpOperationsGateway) -> OperationResult:
			size = operations.get_file_size(clean)
			if size == -1:
				return OperationResult.fail(MSG_FILE_NOT_FOUND)
			if size > max_size:
				return OperationResult.fail(
					f"File too large ({format_megabytes(size)} MB). "
					f"Maximum: {format_megabytes(max_size, 0)} MB"
				)
			content = operations.read_file(clean)
			if content is None:
				return OperationResult.fail(MSG_READ_FAILED)

			extension = file_extension(clean)
			previewable = extension in self._previewable
			if previewable:
				text = base64.b64encode(content).decode("ascii")
			else:
				text = content.decode("utf-8", errors="replace")
			return OperationResult.ok(
				content=text,
				size=size,
				extension=extension,
				isEditable=extension in self._editable,
				isPreviewable=previewable,
				path=clean,
			)

		return await self._run("read", credentials, _read)

	async def write_file(self, credentials: Credentials, path: str, content: str) -> OperationResult:
		max_size = self._editor.max_file_size
		payload = (content or "").encode("utf-8")
		if len(payload) > max_size:
			return OperationResult.fail(f"Content too large. Maximum: {format_megabytes(max_size, 0)} MB")
		if not path:
			return OperationResult.fail(MSG_FILE_PATH_REQUIRED)
		clean = self._sanitize(path)
		if clean is None:
			return OperationResult.fail(MSG_INVALID_PATH)
		if not self.is_editable(clean):
			return OperationResult.fail(MSG_NOT_EDITABLE)

		def _write(operations: FtpOperationsGateway) -> OperationResult:
			result = operations.write_file(clean, payload)
			if not result.success:
				return result
			return OperationResult.ok(MSG_SAVED, path=clean)

		return await self._run("write", credentials, _write)

	async def preview_image(self, credentials: Credentials, path: str) -> OperationResult:
		"""Raw image bytes plus MIME type for inline previews."""
		if not path:
			return OperationResult.fail(MSG_FILE_PATH_REQUIRED)
		clean = self._sanitize(path)
		if clean is None:
			return OperationResult.fail(MSG_INVALID_PATH)

		def _image(operations: FtpOperationsGateway) -> OperationResult:
			content = operations.read_file(clean)
			if content is None:
				return OperationResult.fail(MSG_FILE_NOT_FOUND)
			mime = IMAGE_MIME_TYPES.get(file_extension(clean), "application/octet-stream")
			return OperationResult.ok(content=content, media_type=mime)

		return await self._run("image", credentials, _image)

	# -------------------------
	# mutations
	# -------------------------
	async def create_file(self, credentials: Credentials, parent: str, filename: str) -> OperationResult:
		if not parent or not filename:
			return OperationResult.fail("Path and filename are required")
		name = PathSanitizer.sanitize_name(filename)
		if name is None:
			return OperationResult.fail("Invalid filename")
		clean_parent = self._sanitize(parent)
		if clean_parent is None:
			return OperationResult.fail(MSG_INVALID_PATH)
		full_path = join_remote_path(clean_parent, name)

		def _create(operations: FtpOperationsGateway) -> OperationResult:
			result = operations.create_file(full_path)
			if result.success:
				result.data["path"] = full_path
			return result

		return await self._run("create_file", credentials, _create)

	async def create_folder(self, credentials: Credentials, parent: str, folder_name: str) -> OperationResult:
		if not parent or not folder_name:
			return OperationResult.fail("Path and folder name are required")
		name = PathSanitizer.sanitize_name(folder_name)
		if name is None:
			return OperationResult.fail("Invalid folder name")
		clean_parent = self._sanitize(parent)
		if clean_parent is None:
			return OperationResult.fail(MSG_INVALID_PATH)
		full_path = join_remote_path(clean_parent, name)

		def _create(operations: FtpOperationsGateway) -> OperationResult:
			result = operations.create_folder(full_path)
			if result.success:
				result.data["path"] = full_path
			return result

		return await self._run("create_folder", credentials, _create)

	async def rename(self, credentials: Credentials, old_path: str, new_name: str) -> OperationResult:
		"""Rename inside the same parent directory."""
		if not old_path or not new_name:
			return OperationResult.fail("Old path and new name are required")
		name = PathSanitizer.sanitize_name(new_name)
		if name is None:
			return OperationResult.fail("Invalid name")
		clean_old = self._sanitize(old_path)
		if clean_old is None:
			return OperationResult.fail(MSG_INVALID_PATH)

		parent = posixpath.dirname(clean_old.rstrip("/")) or "/"
		if parent == ".":
			parent = "/"
		new_path = join_remote_path(parent, name)

		def _rename(operations: FtpOperationsGateway) -> OperationResult:
			result = operations.rename(clean_old, new_path)
			if result.success:
				result.data.update(old_path=clean_old, new_path=new_path, parent_path=parent)
			return result

		return await self._run("rename", credentials, _rename)

	async def move(self, credentials: Credentials, source_path: str, destination_path: str) -> OperationResult:
		"""Move to a full destination path, possibly in another folder."""
		if not source_path or not destination_path:
			return OperationResult.fail("Source and destination paths are required")
		source = self._sanitize(source_path)
		destination = self._sanitize(destination_path)
		if source is None or destination is None:
			return OperationResult.fail(MSG_INVALID_PATH)

		def _move(operations: FtpOperationsGateway) -> OperationResult:
			result = operations.rename(source, destination)
			if result.success:
				result.data.update(source_path=source, destination_path=destination)
			return result

		return await self._run("move", credentials, _move)

	def parse_delete_paths(self, path: Optional[str], paths: Optional[str]) -> OperationResult:
		"""Resolve the single ``path`` or JSON ``paths`` form into sanitized paths."""
		if paths:
			if len(paths) > self._max_paths_length:
				return OperationResult.fail("Paths data too large")
			try:
				decoded = json.loads(paths)
			except ValueError:
				return OperationResult.fail("Invalid JSON in paths")
			if not isinstance(decoded, list) or not decoded:
				return OperationResult.fail("Invalid paths array")
			candidates = decoded
		elif path:
			candidates = [path]
		else:
			return OperationResult.fail("Path or paths required")

		sanitized = []
		for candidate in candidates:
			clean = self._sanitize(candidate) if isinstance(candidate, str) else None
			if clean is None:
				return OperationResult.fail(f"Invalid path: {candidate}")
			sanitized.append(clean)
		return OperationResult.ok(paths=sanitized)

	async def delete(
		self,
		credentials: Credentials,
		path: Optional[str] = None,
		paths: Optional[str] = None,
	) -> OperationResult:
		parsed = self.parse_delete_paths(path, paths)
		if not parsed.success:
			return parsed
		targets = parsed.data["paths"]

		result = await self._run("delete", credentials, lambda operations: operations.delete(targets))
		logger.info(
			"Delete completed for user '%s': count=%s success=%s failed=%s",
			credentials.username,
			len(targets),
			result.data.get("successCount", 0),
			result.data.get("failedCount", len(targets)),
		)
		return result

	# -------------------------
	# download
	# -------------------------
	async def download(self, credentials: Credentials, path: str) -> OperationResult:
		"""Download into a temporary file; the caller owns (and removes) ``local_path``."""
		if not path:
			return OperationResult.fail("Path is required")
		clean = self._sanitize(path)
		if clean is None:
			return OperationResult.fail(MSG_INVALID_PATH)

		handle, local_path = tempfile.mkstemp(prefix="webftp_")
		os.close(handle)

		def _download(operations: FtpOperationsGateway) -> OperationResult:
			return operations.download_file(clean, local_path)

		try:
			result = await self._run("download", credentials, _download)
		except BaseException:
			self.discard_download(local_path)
			raise
		if not result.success:
			self.discard_download(local_path)
			return result

		logger.info(
			"File downloaded by '%s': path=%s size=%s",
			credentials.username,
			clean,
			result.data.get("size"),
		)
		result.data.update(local_path=local_path, filename=remote_basename(clean))
		return result

	@staticmethod
	def discard_download(local_path: str) -> None:
		with contextlib.suppress(OSError):
			os.unlink(local_path)
