"""
Generation of the language registry module.

Each language becomes a namespace class holding its query texts, a
binding to its native entry point, a ``config`` factory and a
``self_test``. Every name and alias is then folded, in manifest order,
into one perfect-hash ``LANG_MAP`` pointing at those factories.

The output depends only on the manifest and the query files, so
regenerating from unchanged inputs yields a byte-identical file.

"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from grammarkit.codegen.literals import escape_string
from grammarkit.codegen.phf_builder import PhfMapBuilder
from grammarkit.errors import GenerationError
from grammarkit.utils.path_utils import display_path

if TYPE_CHECKING:
	from pathlib import Path

	from grammarkit.config import BuildSettings
	from grammarkit.manifest import LanguageDescriptor

logger = logging.getLogger(__name__)

# Module-level names of the generated file that a namespace must not shadow
RESERVED_NAMES = frozenset(
	{
		"GRAMMARS",
		"LANGUAGES",
		"LANG_MAP",
		"PhfMap",
		"HighlightConfiguration",
		"NativeGrammarLibrary",
		"check_grammar",
		"TYPE_CHECKING",
		"annotations",
		"staticmethod",
	}
)

HEADER = '''"""Language registry generated by grammarkit. DO NOT EDIT MANUALLY."""

# ruff: noqa: E501, N801
from __future__ import annotations

from typing import TYPE_CHECKING

from grammarkit.highlight import HighlightConfiguration, NativeGrammarLibrary, check_grammar
from grammarkit.phf import PhfMap

if TYPE_CHECKING:
	from collections.abc import Callable

	from tree_sitter import Language

GRAMMARS = NativeGrammarLibrary()
'''

NAMESPACE_TEMPLATE = '''

class {ident}:
	"""Highlighting support for ``{name}``."""

	HIGHLIGHT_QUERY = {highlights}
	INJECTIONS_QUERY = {injections}
	LOCALS_QUERY = {locals}

	@staticmethod
	def language() -> Language:
		return GRAMMARS.language("{symbol}")

	@staticmethod
	def config() -> HighlightConfiguration:
		return HighlightConfiguration(
			{ident}.language(),
			{ident}.HIGHLIGHT_QUERY,
			{ident}.INJECTIONS_QUERY,
			{ident}.LOCALS_QUERY,
		)

	@staticmethod
	def self_test() -> None:
		check_grammar("{name}", {ident}.language, {ident}.config)
'''


@dataclass(frozen=True)
class QueryTexts:
	"""Query file contents of one language; a missing file reads as ``""``."""

	highlights: str = ""
	injections: str = ""
	locals: str = ""


@dataclass(frozen=True)
class LanguageModule:
	"""Everything generated for one language."""

	descriptor: LanguageDescriptor
	queries: QueryTexts

	@property
	def factory_ref(self) -> str:
		return f"{self.descriptor.identifier}.config"

	def entries(self) -> list[tuple[str, str]]:
		"""``(key, factory reference)`` for the name and each alias."""
		return [(key, self.factory_ref) for key in self.descriptor.keys]

	def render(self) -> str:
		descriptor = self.descriptor
		return NAMESPACE_TEMPLATE.format(
			ident=descriptor.identifier,
			name=descriptor.name,
			symbol=descriptor.symbol,
			highlights=escape_string(self.queries.highlights),
			injections=escape_string(self.queries.injections),
			locals=escape_string(self.queries.locals),
		)


class ModuleGenerator:
	"""Writes the registry module for a list of languages."""

	def __init__(self, settings: BuildSettings) -> None:
		self.settings = settings

	def query_path(self, descriptor: LanguageDescriptor, kind: str) -> Path:
		return self.settings.language_dir(descriptor.name) / "queries" / f"{kind}.{self.settings.query_extension}"

	def read_queries(self, descriptor: LanguageDescriptor) -> QueryTexts:
		"""
		Read the three query files of one language.

		Files are decoded as UTF-8 without newline translation.

		Raises:
		    GenerationError: If a present file cannot be read or decoded

		"""
		texts = {}
		for kind in ("highlights", "injections", "locals"):
			path = self.query_path(descriptor, kind)
			if not path.is_file():
				texts[kind] = ""
				continue
			try:
				texts[kind] = path.read_bytes().decode("utf-8")
			except (OSError, UnicodeDecodeError) as e:
				msg = f"Cannot read {kind} query of {descriptor.name!r} at {path}: {e}"
				raise GenerationError(msg) from e
		return QueryTexts(**texts)

	def build_module(self, descriptor: LanguageDescriptor) -> LanguageModule:
		return LanguageModule(descriptor=descriptor, queries=self.read_queries(descriptor))

	def render(self, descriptors: list[LanguageDescriptor]) -> str:
		"""
		Render the complete registry source.

		Raises:
		    GenerationError: If two languages share an identifier or a key

		"""
		modules = [self.build_module(descriptor) for descriptor in descriptors]

		idents: dict[str, str] = {}
		for module in modules:
			ident = module.descriptor.identifier
			if ident in RESERVED_NAMES:
				msg = f"Language {module.descriptor.name!r} would shadow the generated name {ident!r}"
				raise GenerationError(msg)
			if ident in idents:
				msg = f"Languages {idents[ident]!r} and {module.descriptor.name!r} both generate namespace {ident!r}"
				raise GenerationError(msg)
			idents[ident] = module.descriptor.name

		lang_map = PhfMapBuilder()
		for module in modules:
			for key, factory_ref in module.entries():
				try:
					lang_map.entry(key, factory_ref)
				except ValueError as e:
					msg = f"Lookup key {key!r} of {module.descriptor.name!r} is already taken"
					raise GenerationError(msg) from e

		try:
			table = lang_map.build()
		except ValueError as e:
			msg = f"Cannot build the language lookup table: {e}"
			raise GenerationError(msg) from e

		parts = [HEADER]
		parts.extend(module.render() for module in modules)
		parts.append("\n\nLANGUAGES = (\n")
		parts.extend(f"\t{module.descriptor.identifier},\n" for module in modules)
		parts.append(")\n\n")
		parts.append(f"LANG_MAP: PhfMap[Callable[[], HighlightConfiguration]] = {table}\n")
		return "".join(parts)

	def generate(self, descriptors: list[LanguageDescriptor]) -> Path:
		"""
		Generate and write the registry module.

		The file is written next to its destination and moved into place,
		so readers never observe a partial module.

		Returns:
		    Path of the written module

		Raises:
		    GenerationError: If rendering or writing fails

		"""
		source = self.render(descriptors)
		output = self.settings.output_path
		tmp_path = output.with_name(f".{output.name}.tmp")
		try:
			output.parent.mkdir(parents=True, exist_ok=True)
			with tmp_path.open("w", encoding="utf-8", newline="\n") as f:
				f.write(source)
			os.replace(tmp_path, output)
		except OSError as e:
			tmp_path.unlink(missing_ok=True)
			msg = f"Failed to write {output}: {e}"
			logger.exception(msg)
			raise GenerationError(msg) from e

		logger.info(
			"Generated %d languages into %s",
			len(descriptors),
			display_path(output, self.settings.project_root),
		)
		return output
