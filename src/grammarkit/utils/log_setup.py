"""
Logging setup for grammarkit.

This module configures logging for the build entry point, routing
records through rich so per-language progress stays readable when
several fetches and compiles run at once.

"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.rule import Rule
from rich.text import Text

# Initialize console for rich output
console = Console(stderr=True)


def setup_logging(is_verbose: bool = False) -> RichHandler:
	"""
	Route the root logger through rich.

	Args:
	    is_verbose: Enable debug logging, with timestamps and source locations

	Returns:
	    The installed handler

	"""
	log_level = logging.DEBUG if is_verbose else logging.INFO

	root_logger = logging.getLogger()
	root_logger.setLevel(log_level)

	# Clear existing handlers to avoid duplicate logs if called multiple times
	for handler in root_logger.handlers[:]:
		root_logger.removeHandler(handler)

	console_handler = RichHandler(
		console=console,
		level=log_level,
		rich_tracebacks=True,
		show_time=is_verbose,
		show_path=is_verbose,
		markup=True,
	)
	root_logger.addHandler(console_handler)
	return console_handler


def display_error_summary(error_message: str) -> None:
	"""
	Display an error summary with a divider and a title.

	Args:
	        error_message: The error message to display

	"""
	title = Text("Build Failed", style="bold red")

	console.print()
	console.print(Rule(title, style="red"))
	console.print(f"\n{error_message}\n", markup=False)
	console.print(Rule(style="red"))
	console.print()
