"""Utility module for grammarkit."""

from .log_setup import display_error_summary, setup_logging
from .path_utils import display_path, library_filename, remove_tree

__all__ = [
	"display_error_summary",
	"display_path",
	"library_filename",
	"remove_tree",
	"setup_logging",
]
