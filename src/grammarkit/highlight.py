"""
Runtime support for the generated language registry.

Generated namespaces resolve their grammar through a shared
:class:`NativeGrammarLibrary` and build a :class:`HighlightConfiguration`
from the query texts embedded next to them.

"""

from __future__ import annotations

import ctypes
import logging
import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from tree_sitter import Language, Parser, Query

from grammarkit.errors import GrammarLoadError, GrammarSelfTestError, GrammarkitError, HighlightConfigurationError
from grammarkit.utils.path_utils import library_filename

if TYPE_CHECKING:
	from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)

LIBRARY_ENV_VAR = "GRAMMARKIT_GRAMMAR_LIBRARY"
CAPSULE_NAME = b"tree_sitter.Language"

_capsule_new = ctypes.pythonapi.PyCapsule_New
_capsule_new.restype = ctypes.py_object
_capsule_new.argtypes = (ctypes.c_void_p, ctypes.c_char_p, ctypes.c_void_p)


def default_library_path() -> Path:
	"""Linked grammar library, overridable through ``GRAMMARKIT_GRAMMAR_LIBRARY``."""
	override = os.environ.get(LIBRARY_ENV_VAR)
	if override:
		return Path(override)
	return Path(__file__).parent / library_filename()


class NativeGrammarLibrary:
	"""Lazily loaded shared library exporting ``tree_sitter_<name>`` entry points."""

	def __init__(self, path: Path | str | None = None) -> None:
		self._path = Path(path) if path else None
		self._lock = threading.Lock()
		self._cdll: ctypes.CDLL | None = None
		self._languages: dict[str, Language] = {}

	@property
	def path(self) -> Path:
		return self._path or default_library_path()

	def _load(self) -> ctypes.CDLL:
		with self._lock:
			if self._cdll is None:
				path = self.path
				if not path.exists():
					msg = f"Grammar library not found at {path}; build it first"
					raise GrammarLoadError(msg)
				try:
					self._cdll = ctypes.CDLL(str(path))
				except OSError as e:
					msg = f"Cannot load grammar library {path}: {e}"
					raise GrammarLoadError(msg) from e
				logger.debug("Loaded grammar library %s", path)
			return self._cdll

	def language(self, symbol: str) -> Language:
		"""
		Resolve a grammar entry point.

		Args:
		    symbol: Exported function name, e.g. ``tree_sitter_python``

		Raises:
		    GrammarLoadError: If the library or symbol is missing, or the
		        grammar's ABI version is not supported

		"""
		cached = self._languages.get(symbol)
		if cached is not None:
			return cached

		cdll = self._load()
		try:
			entry_point = getattr(cdll, symbol)
		except AttributeError as e:
			msg = f"Symbol {symbol} not found in {self.path}"
			raise GrammarLoadError(msg) from e
		entry_point.restype = ctypes.c_void_p
		entry_point.argtypes = ()

		pointer = entry_point()
		if not pointer:
			msg = f"{symbol} returned a null grammar"
			raise GrammarLoadError(msg)
		try:
			language = Language(_capsule_new(pointer, CAPSULE_NAME, None))
		except ValueError as e:
			msg = f"Incompatible grammar {symbol}: {e}"
			raise GrammarLoadError(msg) from e

		self._languages[symbol] = language
		return language


def _compile_query(language: Language, source: str, kind: str) -> Query | None:
	if not source.strip():
		return None
	try:
		return Query(language, source)
	except Exception as e:
		msg = f"Invalid {kind} query: {e}"
		raise HighlightConfigurationError(msg) from e


class HighlightConfiguration:
	"""
	A grammar together with its highlight, injection and locals queries.

	Empty query texts produce no compiled query.

	Raises:
	    HighlightConfigurationError: If a query does not compile

	"""

	def __init__(
		self,
		language: Language,
		highlights_query: str,
		injections_query: str = "",
		locals_query: str = "",
	) -> None:
		self.language = language
		self.highlights_source = highlights_query
		self.injections_source = injections_query
		self.locals_source = locals_query

		self.highlights = _compile_query(language, highlights_query, "highlights")
		self.injections = _compile_query(language, injections_query, "injections")
		self.locals = _compile_query(language, locals_query, "locals")
		self.highlight_indices: list[int | None] = [None] * len(self.capture_names)

	@property
	def capture_names(self) -> list[str]:
		"""Capture names of the highlights query, in capture order."""
		if self.highlights is None:
			return []
		return [self.highlights.capture_name(index) for index in range(self.highlights.capture_count)]

	def configure(self, recognized_names: Sequence[str]) -> list[int | None]:
		"""
		Map each capture to the recognized highlight name that matches it best.

		A recognized name matches when each of its dot-separated parts occurs
		in the capture name; the match with the most parts wins, and earlier
		names win ties. ``function.builtin`` therefore prefers
		``function.builtin`` over ``function``.

		Returns:
		    Index into ``recognized_names`` per capture, or None

		"""
		split_names = [name.split(".") for name in recognized_names]
		indices: list[int | None] = []
		for capture_name in self.capture_names:
			capture_parts = set(capture_name.split("."))
			best_index = None
			best_len = 0
			for index, parts in enumerate(split_names):
				if len(parts) > best_len and all(part in capture_parts for part in parts):
					best_index = index
					best_len = len(parts)
			indices.append(best_index)
		self.highlight_indices = indices
		return indices


def check_grammar(
	name: str,
	language: Callable[[], Language],
	config: Callable[[], HighlightConfiguration],
) -> None:
	"""
	Self-test for one generated language.

	Loads the grammar into a parser, parses an empty document and builds
	the highlight configuration.

	Raises:
	    GrammarSelfTestError: If any step fails

	"""
	try:
		parser = Parser(language())
		parser.parse(b"")
		config()
	except (GrammarkitError, ValueError) as e:
		msg = f"Grammar {name!r} failed its self-test: {e}"
		raise GrammarSelfTestError(msg) from e
	logger.debug("Grammar %s passed its self-test", name)
