"""
File operations over an authenticated FtpConnectionGateway.

Public methods never raise for remote failures: ftplib errors are turned
into a failed OperationResult (or the method's falsy value) at this layer.
"""

import ftplib
import io
import logging
import posixpath
from typing import Iterable, Optional, Union

from webftp.core.logging import FtpOperationLogger
from webftp.core.security import PathSanitizer
from webftp.services.ftp_connection import FtpConnectionGateway
from webftp.services.listing_parser import parse_lines
from webftp.services.utils.ftps_helpers import join_remote_path
from webftp.services.utils.types import DirectoryEntry, OperationResult

logger = logging.getLogger(__name__)

MSG_NOT_CONNECTED = "Not connected to FTP server"
MSG_OPERATION_ERROR = "FTP operation error occurred"
MSG_DIRECTORY_MISSING = "Directory does not exist"
MSG_SAVED = "File saved successfully"
MSG_SAVE_FAILED = "Could not save file"
MSG_FILE_EXISTS = "File already exists"
MSG_FILE_CREATED = "File created successfully"
MSG_FILE_CREATE_FAILED = "Failed to create file on FTP server"
MSG_FOLDER_CREATED = "Folder created successfully"
MSG_FOLDER_CREATE_FAILED = "Failed to create folder (may already exist)"
MSG_TARGET_EXISTS = "A file or folder with this name already exists"
MSG_RENAMED = "Renamed successfully"
MSG_RENAME_FAILED = "Failed to rename - please check permissions"
MSG_FILE_NOT_FOUND = "File not found"
MSG_DOWNLOADED = "File downloaded successfully"
MSG_DOWNLOAD_FAILED = "Failed to download file"

# replies meaning the server does not implement MLST at all
_MLST_UNSUPPORTED = ("500", "502", "504")
_DIRECTORY_FACTS = {"dir", "cdir", "pdir"}


class FtpOperationsGateway:
	def __init__(
		self,
		connection: FtpConnectionGateway,
		operation_logger: Optional[FtpOperationLogger] = None,
	):
		self._connection = connection
		self._log = operation_logger or connection.operation_logger
		self._mlst_supported: Optional[bool] = None

	# -------------------------
	# helpers
	# -------------------------
	def _ftp(self) -> Optional[ftplib.FTP]:
		return self._connection._handle()

	def _error(self, operation: str, exc: BaseException, **data) -> OperationResult:
		self._log.ftp(operation, {"error": str(exc)}, False)
		return OperationResult.fail(MSG_OPERATION_ERROR, **data)

	def _not_connected(self, operation: str, **data) -> OperationResult:
		self._log.ftp(operation, {"reason": "Not connected"}, False)
		return OperationResult.fail(MSG_NOT_CONNECTED, **data)

	@staticmethod
	def _pwd(ftp: ftplib.FTP) -> Optional[str]:
		try:
			return ftp.pwd()
		except ftplib.all_errors:
			return None

	def _origin(self, ftp: ftplib.FTP) -> str:
		# the session starts at the root when PWD is refused
		return self._pwd(ftp) or "/"

	@staticmethod
	def _restore(ftp: ftplib.FTP, directory: Optional[str]) -> None:
		if not directory:
			return
		try:
			ftp.cwd(directory)
		except ftplib.all_errors as exc:
			logger.debug("Could not return to %s: %s", directory, exc)

	def _raw_list(self, ftp: ftplib.FTP, path: str) -> Optional[list[str]]:
		"""LIST the directory from inside it. None when the directory cannot be entered."""
		current = self._origin(ftp)
		try:
			ftp.cwd(path)
		except ftplib.error_perm:
			return None
		lines: list[str] = []
		try:
			ftp.retrlines("LIST .", lines.append)
		except ftplib.all_errors as exc:
			logger.debug("LIST failed in %s: %s", path, exc)
			lines = []
		finally:
			self._restore(ftp, current)
		return lines

	@staticmethod
	def _size(ftp: ftplib.FTP, path: str) -> int:
		try:
			# SIZE is refused by many servers in ASCII mode
			ftp.voidcmd("TYPE I")
			size = ftp.size(path)
		except ftplib.all_errors:
			return -1
		return size if size is not None else -1

	@staticmethod
	def _list_has_entries(ftp: ftplib.FTP, path: str) -> bool:
		lines: list[str] = []
		try:
			ftp.retrlines(f"LIST {path}", lines.append)
		except ftplib.all_errors:
			return False
		return any(line.strip() for line in lines)

	def _cwd_probe(self, ftp: ftplib.FTP, path: str) -> bool:
		current = self._origin(ftp)
		try:
			ftp.cwd(path)
		except ftplib.all_errors:
			return False
		self._restore(ftp, current)
		return True

	def _mlst_type(self, ftp: ftplib.FTP, path: str) -> Optional[str]:
		if self._mlst_supported is False:
			return None
		try:
			reply = ftp.sendcmd(f"MLST {path}")
		except ftplib.error_perm as exc:
			if str(exc)[:3] in _MLST_UNSUPPORTED:
				self._mlst_supported = False
			else:
				self._mlst_supported = True
			return None
		self._mlst_supported = True
		for line in reply.splitlines():
			if not line.startswith(" "):
				continue
			facts, _, _ = line.strip().partition(" ")
			for fact in facts.split(";"):
				key, _, value = fact.partition("=")
				if key.lower() == "type":
					value = value.lower()
					return "dir" if value in _DIRECTORY_FACTS else "file"
		return None

	def _is_directory(self, ftp: ftplib.FTP, path: str) -> bool:
		kind = self._mlst_type(ftp, path)
		if self._mlst_supported:
			return kind == "dir"
		return self._cwd_probe(ftp, path)

	def _delete_folder_recursive(self, ftp: ftplib.FTP, directory: str) -> bool:
		try:
			names = ftp.nlst(directory)
		except ftplib.error_perm:
			# several servers answer 550 for NLST of an empty directory
			names = []
		except ftplib.all_errors:
			return False

		for name in names:
			base = posixpath.basename(name.rstrip("/"))
			if base in {"", ".", ".."}:
				continue
			child = join_remote_path(directory, base)
			if self._is_directory(ftp, child):
				if not self._delete_folder_recursive(ftp, child):
					return False
				continue
			try:
				ftp.delete(child)
			except ftplib.all_errors as exc:
				logger.debug("DELE %s failed: %s", child, exc)
				return False

		try:
			ftp.rmd(directory)
		except ftplib.all_errors as exc:
			logger.debug("RMD %s failed: %s", directory, exc)
			return False
		return True

	# -------------------------
	# listing
	# -------------------------
	def list_directory(self, path: str = "/") -> OperationResult:
		ftp = self._ftp()
		if ftp is None:
			return self._not_connected("list_directory", folders=[], files=[])

		try:
			lines = self._raw_list(ftp, path)
		except ftplib.all_errors as exc:
			return self._error("list_directory", exc, folders=[], files=[])

		if lines is None:
			self._log.ftp("list_directory", {"path": path, "reason": MSG_DIRECTORY_MISSING}, False)
			return OperationResult.fail(MSG_DIRECTORY_MISSING, folders=[], files=[])

		listing = parse_lines(lines, path)
		self._log.ftp(
			"list_directory",
			{"path": path, "folders": len(listing.folders), "files": len(listing.files)},
			True,
		)
		return OperationResult.ok(folders=listing.folders, files=listing.files)

	def get_tree(self, path: str = "/", max_depth: int = 10, depth: int = 0) -> list[DirectoryEntry]:
		"""Entries directly under ``path``; directories carry an empty ``children`` list."""
		ftp = self._ftp()
		if ftp is None or depth >= max_depth:
			self._log.ftp(
				"get_tree",
				{"path": path, "depth": depth, "max_depth": max_depth, "connected": ftp is not None},
				False,
			)
			return []

		try:
			lines = self._raw_list(ftp, path)
		except ftplib.all_errors as exc:
			self._log.ftp("get_tree", {"path": path, "error": str(exc)}, False)
			return []
		if not lines:
			return []

		listing = parse_lines(lines, path)
		for folder in listing.folders:
			folder.children = []
		tree = listing.combined()
		self._log.ftp("get_tree", {"path": path, "count": len(tree)}, True)
		return tree

	# -------------------------
	# content
	# -------------------------
	def read_file(self, path: str) -> Optional[bytes]:
		ftp = self._ftp()
		if ftp is None:
			self._log.ftp("read_file", {"path": path, "reason": "Not connected"}, False)
			return None

		buffer = io.BytesIO()
		try:
			ftp.retrbinary(f"RETR {path}", buffer.write)
		except ftplib.all_errors as exc:
			self._log.ftp("read_file", {"path": path, "error": str(exc)}, False)
			return None
		content = buffer.getvalue()
		self._log.ftp("read_file", {"path": path, "size": len(content)}, True)
		return content

	def write_file(self, path: str, content: Union[bytes, str]) -> OperationResult:
		ftp = self._ftp()
		if ftp is None:
			return self._not_connected("write_file")

		if isinstance(content, str):
			content = content.encode("utf-8")
		try:
			ftp.storbinary(f"STOR {path}", io.BytesIO(content))
		except ftplib.all_errors as exc:
			self._log.ftp("write_file", {"path": path, "error": str(exc)}, False)
			return OperationResult.fail(MSG_SAVE_FAILED)
		self._log.ftp("write_file", {"path": path, "size": len(content)}, True)
		return OperationResult.ok(MSG_SAVED)

	def download_file(self, remote_path: str, local_path: str) -> OperationResult:
		ftp = self._ftp()
		if ftp is None:
			return self._not_connected("download_file", size=0)

		size = self._size(ftp, remote_path)
		if size < 0:
			self._log.ftp("download_file", {"path": remote_path, "reason": MSG_FILE_NOT_FOUND}, False)
			return OperationResult.fail(MSG_FILE_NOT_FOUND, size=0)
		try:
			with open(local_path, "wb") as handle:
				ftp.retrbinary(f"RETR {remote_path}", handle.write)
		except (OSError, EOFError, ftplib.Error) as exc:
			self._log.ftp("download_file", {"path": remote_path, "error": str(exc)}, False)
			return OperationResult.fail(MSG_DOWNLOAD_FAILED, size=0)
		self._log.ftp("download_file", {"path": remote_path, "size": size}, True)
		return OperationResult.ok(MSG_DOWNLOADED, size=size)

	# -------------------------
	# mutations
	# -------------------------
	def create_file(self, path: str) -> OperationResult:
		ftp = self._ftp()
		if ftp is None:
			return self._not_connected("create_file")

		try:
			if self._size(ftp, path) >= 0:
				self._log.ftp("create_file", {"path": path, "reason": MSG_FILE_EXISTS}, False)
				return OperationResult.fail(MSG_FILE_EXISTS)
			try:
				ftp.storbinary(f"STOR {path}", io.BytesIO(b""))
			except ftplib.Error as exc:
				self._log.ftp("create_file", {"path": path, "error": str(exc)}, False)
				return OperationResult.fail(MSG_FILE_CREATE_FAILED)
		except ftplib.all_errors as exc:
			return self._error("create_file", exc)
		self._log.ftp("create_file", {"path": path}, True)
		return OperationResult.ok(MSG_FILE_CREATED)

	def create_folder(self, path: str) -> OperationResult:
		ftp = self._ftp()
		if ftp is None:
			return self._not_connected("create_folder")

		try:
			ftp.mkd(path)
		except ftplib.Error as exc:
			self._log.ftp("create_folder", {"path": path, "error": str(exc)}, False)
			return OperationResult.fail(MSG_FOLDER_CREATE_FAILED)
		except ftplib.all_errors as exc:
			return self._error("create_folder", exc)
		self._log.ftp("create_folder", {"path": path}, True)
		return OperationResult.ok(MSG_FOLDER_CREATED)

	def rename(self, old_path: str, new_path: str) -> OperationResult:
		"""RNFR/RNTO after a best-effort check that ``new_path`` is free."""
		ftp = self._ftp()
		if ftp is None:
			return self._not_connected("rename")

		details = {"from": old_path, "to": new_path}
		try:
			if self._size(ftp, new_path) >= 0 or self._list_has_entries(ftp, new_path):
				self._log.ftp("rename", {**details, "reason": "Target already exists"}, False)
				return OperationResult.fail(MSG_TARGET_EXISTS)
			try:
				ftp.rename(old_path, new_path)
			except ftplib.Error as exc:
				self._log.ftp("rename", {**details, "error": str(exc)}, False)
				return OperationResult.fail(MSG_RENAME_FAILED)
		except ftplib.all_errors as exc:
			return self._error("rename", exc)
		self._log.ftp("rename", details, True)
		return OperationResult.ok(MSG_RENAMED)

	def delete(self, paths: Union[str, Iterable[str]]) -> OperationResult:
		if isinstance(paths, str):
			paths = [paths]
		paths = list(paths)

		ftp = self._ftp()
		if ftp is None:
			return self._not_connected(
				"delete",
				results=[],
				successCount=0,
				failedCount=len(paths),
			)

		results = []
		success_count = 0
		failed_count = 0
		for path in paths:
			kind = "file"
			try:
				is_dir = self._is_directory(ftp, path)
				kind = "directory" if is_dir else "file"
				if is_dir:
					deleted = self._delete_folder_recursive(ftp, path)
				else:
					ftp.delete(path)
					deleted = True
			except ftplib.all_errors as exc:
				logger.debug("Delete of %s failed: %s", path, exc)
				deleted = False

			if deleted:
				success_count += 1
				results.append({"path": path, "success": True, "type": kind})
			else:
				failed_count += 1
				results.append({
					"path": path,
					"success": False,
					"type": kind,
					"message": f"Failed to delete {kind}",
				})
			self._log.ftp("delete:item", {"path": path, "type": kind}, deleted)

		self._log.ftp(
			"delete",
			{"total": len(paths), "success": success_count, "failed": failed_count},
			failed_count == 0,
		)
		if failed_count == 0:
			message = f"Successfully deleted {success_count} item(s)"
		else:
			message = f"Deleted {success_count} item(s), failed to delete {failed_count} item(s)"
		return OperationResult(
			failed_count == 0,
			message,
			{"results": results, "successCount": success_count, "failedCount": failed_count},
		)

	# -------------------------
	# probes
	# -------------------------
	def is_directory(self, path: str) -> bool:
		ftp = self._ftp()
		if ftp is None:
			return False
		try:
			return self._is_directory(ftp, path)
		except ftplib.all_errors as exc:
			logger.debug("Directory probe for %s failed: %s", path, exc)
			return False

	def stat(self, path: str) -> Optional[str]:
		"""``"dir"`` or ``"file"`` from MLST; None if missing, unsupported or disconnected."""
		ftp = self._ftp()
		if ftp is None:
			return None
		try:
			return self._mlst_type(ftp, path)
		except ftplib.all_errors as exc:
			logger.debug("MLST %s failed: %s", path, exc)
			return None

	def get_file_size(self, path: str) -> int:
		ftp = self._ftp()
		if ftp is None:
			return -1
		return self._size(ftp, path)

	def get_current_directory(self) -> Optional[str]:
		ftp = self._ftp()
		if ftp is None:
			return None
		return self._pwd(ftp)

	def change_directory(self, path: str) -> bool:
		ftp = self._ftp()
		if ftp is None:
			return False
		if PathSanitizer.sanitize(path) is None:
			return False
		try:
			ftp.cwd(path)
		except ftplib.all_errors:
			return False
		return True
