"""Lookup of highlight configurations in the generated language registry."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

from grammarkit.errors import GrammarkitError

if TYPE_CHECKING:
	from collections.abc import Callable
	from types import ModuleType

	from grammarkit.highlight import HighlightConfiguration
	from grammarkit.phf import PhfMap

REGISTRY_MODULE = "grammarkit.languages"


class LanguageNotFoundError(GrammarkitError, KeyError):
	"""No language is registered under the requested name or alias."""


def _registry() -> ModuleType:
	try:
		return importlib.import_module(REGISTRY_MODULE)
	except ModuleNotFoundError as e:
		if e.name != REGISTRY_MODULE:
			raise
		msg = f"{REGISTRY_MODULE} has not been generated; run a build with GRAMMARKIT_REBUILD_LANGS set"
		raise GrammarkitError(msg) from e


def lang_map() -> PhfMap[Callable[[], HighlightConfiguration]]:
	"""The generated name/alias to factory table."""
	return _registry().LANG_MAP


def get_factory(name: str) -> Callable[[], HighlightConfiguration]:
	"""
	Factory registered under a language name or alias.

	Raises:
	    LanguageNotFoundError: If ``name`` is not a registered key

	"""
	try:
		return lang_map()[name]
	except KeyError:
		msg = f"No language registered as {name!r}"
		raise LanguageNotFoundError(msg) from None


def get_config(name: str) -> HighlightConfiguration:
	"""Build a fresh highlight configuration for a language name or alias."""
	return get_factory(name)()


def supported_languages() -> list[str]:
	"""Every registered name and alias, sorted."""
	return sorted(lang_map())
