"""Global test fixtures and configuration."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from grammarkit.config import BuildSettings

if TYPE_CHECKING:
	from collections.abc import Callable, Mapping

MINIMAL_PARSER = """\
const void *tree_sitter_{ident}(void) {{
	static const int language = 0;
	return &language;
}}
"""

MINIMAL_C_SCANNER = """\
void tree_sitter_{ident}_external_scanner_destroy(void *payload) {{
	(void)payload;
}}
"""

MINIMAL_CPP_SCANNER = """\
extern "C" void tree_sitter_{ident}_external_scanner_destroy(void *payload) {{
	(void)payload;
}}
"""


def write_grammar(
	root: Path,
	name: str,
	scanner: str | None = None,
	queries: Mapping[str, str] | None = None,
	extra_files: Mapping[str, str] | None = None,
) -> Path:
	"""
	Lay out a grammar checkout under ``root``.

	Args:
	    root: Directory that becomes the checkout
	    name: Language name used for the entry point symbols
	    scanner: ``"c"``, ``"cpp"`` or None
	    queries: Query kind -> text, written to ``queries/<kind>.scm``
	    extra_files: Relative path -> content for anything else in the checkout

	"""
	ident = name.replace("-", "_")
	src = root / "src"
	src.mkdir(parents=True, exist_ok=True)
	(src / "parser.c").write_text(MINIMAL_PARSER.format(ident=ident))
	if scanner == "c":
		(src / "scanner.c").write_text(MINIMAL_C_SCANNER.format(ident=ident))
	elif scanner == "cpp":
		(src / "scanner.cc").write_text(MINIMAL_CPP_SCANNER.format(ident=ident))

	if queries is not None:
		query_dir = root / "queries"
		query_dir.mkdir(exist_ok=True)
		for kind, text in queries.items():
			(query_dir / f"{kind}.scm").write_bytes(text.encode("utf-8"))

	for relative, content in (extra_files or {}).items():
		path = root / relative
		path.parent.mkdir(parents=True, exist_ok=True)
		path.write_text(content)
	return root


@pytest.fixture
def settings(tmp_path: Path) -> BuildSettings:
	"""Build settings rooted at a temporary project."""
	return BuildSettings(project_root=tmp_path, jobs=2).resolve_paths()


@pytest.fixture
def canonical_grammar(settings: BuildSettings) -> Callable[..., Path]:
	"""Create grammars directly in their canonical language directories."""

	def _create(name: str, scanner: str | None = None, queries: Mapping[str, str] | None = None) -> Path:
		return write_grammar(settings.language_dir(name), name, scanner=scanner, queries=queries or {})

	return _create


@pytest.fixture
def grammar_writer() -> Callable[..., Path]:
	"""The grammar checkout helper, for tests that build their own layouts."""
	return write_grammar
