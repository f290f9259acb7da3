"""
Exception hierarchy for grammarkit.

Every stage of the build raises its own error type. None of them are
retried: the first error observed aborts the whole build.

"""

from __future__ import annotations


class GrammarkitError(Exception):
	"""Base class for all grammarkit errors."""


class ConfigError(GrammarkitError):
	"""Exception raised for build settings errors."""


class ConfigParsingError(ConfigError):
	"""Exception raised when a settings file cannot be parsed or validated."""


class ManifestParseError(GrammarkitError):
	"""The language manifest is structurally invalid."""


class KeyCollisionError(ManifestParseError):
	"""Two lookup keys (names or aliases) in the manifest are identical."""

	def __init__(self, key: str, first: str, second: str) -> None:
		self.key = key
		self.first = first
		self.second = second
		if first == second:
			msg = f"Key {key!r} is declared more than once by language {first!r}"
		else:
			msg = f"Key {key!r} is declared by both {first!r} and {second!r}"
		super().__init__(msg)


class FetchError(GrammarkitError):
	"""A grammar fetch could not be spawned or exited unsuccessfully."""

	def __init__(self, language: str, message: str, returncode: int | None = None) -> None:
		self.language = language
		self.returncode = returncode
		super().__init__(message)


class RelocationError(GrammarkitError):
	"""Fetched sources could not be moved into the canonical language directory."""


class CompileError(GrammarkitError):
	"""A toolchain invocation failed."""

	def __init__(self, message: str, command: list[str] | None = None, stderr: str = "") -> None:
		self.command = command or []
		self.stderr = stderr
		super().__init__(message)


class GenerationError(GrammarkitError):
	"""The language registry module could not be generated."""


class GrammarSelfTestError(GenerationError):
	"""A generated language failed its self-test."""


class GrammarLoadError(GrammarkitError):
	"""A compiled grammar could not be loaded at runtime."""


class HighlightConfigurationError(GrammarkitError):
	"""A highlight configuration could not be constructed from its queries."""
