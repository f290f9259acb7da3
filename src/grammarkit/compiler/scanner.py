"""Detection of hand-written scanners next to a generated parser."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
	from pathlib import Path

PARSER_FILE = "parser.c"
C_SCANNER_FILE = "scanner.c"
CPP_SCANNER_FILE = "scanner.cc"


class ScannerKind(Enum):
	"""Which external scanner a grammar ships, if any."""

	NONE = "none"
	C = "c"
	CPP = "cpp"


def detect_scanner(src_dir: Path) -> ScannerKind:
	"""
	Inspect a grammar's ``src`` directory for an external scanner.

	A C++ scanner takes precedence when both variants exist.

	Args:
	    src_dir: The grammar's ``src`` directory

	Returns:
	    The detected scanner kind

	"""
	if (src_dir / CPP_SCANNER_FILE).is_file():
		return ScannerKind.CPP
	if (src_dir / C_SCANNER_FILE).is_file():
		return ScannerKind.C
	return ScannerKind.NONE
