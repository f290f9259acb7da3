"""Utilities for handling paths and file system operations."""

from __future__ import annotations

import logging
import shutil
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

LIBRARY_STEM = "_grammars"


def library_filename(platform: str | None = None) -> str:
	"""
	File name of the linked grammar library for a platform.

	Args:
	    platform: A ``sys.platform`` value, defaults to the running one

	Returns:
	    ``_grammars`` with the platform's shared library suffix

	"""
	platform = platform or sys.platform
	if platform == "darwin":
		return f"{LIBRARY_STEM}.dylib"
	if platform.startswith(("win32", "cygwin")):
		return f"{LIBRARY_STEM}.dll"
	return f"{LIBRARY_STEM}.so"


def remove_tree(path: Path) -> None:
	"""Delete a directory tree if it exists."""
	if path.exists():
		logger.debug("Removing %s", path)
		shutil.rmtree(path)


def display_path(path: Path, root: Path) -> str:
	"""Render ``path`` relative to ``root`` when possible, for log messages."""
	try:
		return str(path.relative_to(root))
	except ValueError:
		return str(path)
