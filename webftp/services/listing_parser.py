"""
Parser for Unix-style ``LIST`` output.

Each line looks like ``drwxr-xr-x 2 owner group 4096 Jan 05 12:30 name``.
Lines that do not split into nine fields are ignored, ``.`` and ``..`` are
never surfaced, and symlinks are recognised either from the permissions
field or from a ``name -> target`` suffix.
"""

import enum
import logging
from datetime import datetime
from typing import Iterable, Optional

from webftp.services.utils.types import DirectoryEntry, DirectoryListing, EntryType

logger = logging.getLogger(__name__)

LIST_FIELD_COUNT = 9
SYMLINK_ARROW = " -> "

MONTHS = {
	"Jan": "01", "Feb": "02", "Mar": "03", "Apr": "04",
	"May": "05", "Jun": "06", "Jul": "07", "Aug": "08",
	"Sep": "09", "Oct": "10", "Nov": "11", "Dec": "12",
}
DEFAULT_MONTH = "01"


class SymlinkSignal(enum.Flag):
	"""Ways a listing line can announce a symlink. Servers emit one or both."""

	NONE = 0
	PERMISSIONS = enum.auto()
	ARROW = enum.auto()


def detect_symlink(permissions: str, raw_name: str) -> SymlinkSignal:
	signals = SymlinkSignal.NONE
	if permissions.startswith("l"):
		signals |= SymlinkSignal.PERMISSIONS
	if SYMLINK_ARROW in raw_name:
		signals |= SymlinkSignal.ARROW
	return signals


def format_modified_date(
	month: str,
	day: str,
	time_or_year: str,
	*,
	current_year: Optional[int] = None,
) -> str:
	"""Render listing date fields as ``DD/MM/YYYY HH:MM`` or ``DD/MM/YYYY``."""
	if not month or not day or not time_or_year:
		return "-"

	month_num = MONTHS.get(month)
	if month_num is None:
		logger.debug("Unknown month abbreviation %r in listing, using %s", month, DEFAULT_MONTH)
		month_num = DEFAULT_MONTH
	day_num = day.rjust(2, "0")

	if ":" in time_or_year:
		year = current_year or datetime.now().year
		return f"{day_num}/{month_num}/{year} {time_or_year}"
	return f"{day_num}/{month_num}/{time_or_year}"


def _parse_size(raw: str) -> int:
	try:
		return int(raw)
	except ValueError:
		return 0


def parse_line(
	raw_line: str,
	parent_path: str,
	*,
	current_year: Optional[int] = None,
) -> Optional[DirectoryEntry]:
	parts = raw_line.rstrip("\r\n").split(None, LIST_FIELD_COUNT - 1)
	if len(parts) < LIST_FIELD_COUNT:
		return None

	permissions = parts[0]
	raw_name = parts[8]
	signals = detect_symlink(permissions, raw_name)

	name = raw_name
	symlink_target = None
	if SymlinkSignal.ARROW in signals:
		name, symlink_target = raw_name.split(SYMLINK_ARROW, 1)

	if name in {".", ".."}:
		return None

	path = f"{parent_path.rstrip('/')}/{name}"
	is_directory = permissions.startswith("d")
	return DirectoryEntry(
		name=name,
		path=path,
		real_path=symlink_target or path,
		type=EntryType.DIRECTORY if is_directory else EntryType.FILE,
		permissions=permissions,
		modified=format_modified_date(parts[5], parts[6], parts[7], current_year=current_year),
		size=0 if is_directory else _parse_size(parts[4]),
		is_symlink=bool(signals),
		symlink_target=symlink_target or None,
	)


def sort_entries(entries: Iterable[DirectoryEntry]) -> list[DirectoryEntry]:
	return sorted(entries, key=lambda entry: entry.name.lower())


def parse_lines(
	lines: Iterable[str],
	parent_path: str,
	*,
	current_year: Optional[int] = None,
) -> DirectoryListing:
	"""Parse a whole raw listing into sorted folders and files."""
	folders: list[DirectoryEntry] = []
	files: list[DirectoryEntry] = []
	skipped = 0
	for line in lines:
		entry = parse_line(line, parent_path, current_year=current_year)
		if entry is None:
			skipped += 1
			continue
		if entry.is_directory:
			folders.append(entry)
		else:
			files.append(entry)
	if skipped:
		logger.debug("Skipped %s unparseable or dot entries under %s", skipped, parent_path)
	return DirectoryListing(folders=sort_entries(folders), files=sort_entries(files))
