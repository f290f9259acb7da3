"""
Language manifest loading.

The manifest is a YAML document with a top-level ``languages`` list::

    languages:
      - name: python
        repo: https://github.com/tree-sitter/tree-sitter-python
        aliases: [py]
      - name: markdown
        command: git clone --depth 1 https://github.com/tree-sitter-grammars/tree-sitter-markdown "$GRAMMARKIT_STAGING_DIR.repo" && mv "$GRAMMARKIT_STAGING_DIR.repo/tree-sitter-markdown" "$GRAMMARKIT_STAGING_DIR"

Every name and alias becomes a lookup key of the generated registry, so
all keys must be unique across the manifest.

"""

from __future__ import annotations

import keyword
import logging
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from grammarkit.errors import KeyCollisionError, ManifestParseError

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


class LanguageDescriptor(BaseModel):
	"""One language entry of the manifest."""

	model_config = ConfigDict(frozen=True, extra="forbid")

	name: str
	"""Primary lookup key and canonical directory name."""

	repo: str | None = None
	"""Git URL cloned by the default fetch strategy."""

	aliases: tuple[str, ...] = Field(default_factory=tuple)
	"""Additional lookup keys."""

	command: str | None = None
	"""Shell command run instead of ``git clone``."""

	@field_validator("name")
	@classmethod
	def _check_name(cls, value: str) -> str:
		if not NAME_PATTERN.match(value):
			msg = f"Language name {value!r} must start with a letter or underscore and contain only letters, digits, '_' or '-'"
			raise ValueError(msg)
		return value

	@field_validator("aliases")
	@classmethod
	def _check_aliases(cls, value: tuple[str, ...]) -> tuple[str, ...]:
		for alias in value:
			if not alias.strip():
				msg = "Aliases must be non-empty strings"
				raise ValueError(msg)
		return value

	@model_validator(mode="after")
	def _require_source(self) -> LanguageDescriptor:
		if not self.repo and not self.command:
			msg = f"Language {self.name!r} needs a 'repo' unless a 'command' is given"
			raise ValueError(msg)
		return self

	@property
	def identifier(self) -> str:
		"""Python identifier of the generated namespace."""
		ident = self.name.replace("-", "_")
		if keyword.iskeyword(ident):
			return f"{ident}_"
		return ident

	@property
	def symbol(self) -> str:
		"""Native entry point exported by the compiled grammar."""
		return f"tree_sitter_{self.name.replace('-', '_')}"

	@property
	def keys(self) -> tuple[str, ...]:
		"""Every lookup key, primary name first."""
		return (self.name, *self.aliases)


class Manifest(BaseModel):
	"""Top-level manifest document."""

	model_config = ConfigDict(extra="forbid")

	languages: list[LanguageDescriptor]


def check_unique_keys(descriptors: list[LanguageDescriptor]) -> None:
	"""
	Ensure no lookup key is declared twice.

	Raises:
	    KeyCollisionError: On the first repeated name or alias

	"""
	owners: dict[str, str] = {}
	for descriptor in descriptors:
		for key in descriptor.keys:
			if key in owners:
				raise KeyCollisionError(key, owners[key], descriptor.name)
			owners[key] = descriptor.name


def parse_manifest(text: str) -> list[LanguageDescriptor]:
	"""
	Parse manifest text into language descriptors.

	Args:
	    text: YAML manifest content

	Returns:
	    Descriptors in manifest order

	Raises:
	    ManifestParseError: If the text is not a valid manifest

	"""
	try:
		document = yaml.safe_load(text)
	except yaml.YAMLError as e:
		msg = f"Manifest is not valid YAML: {e}"
		raise ManifestParseError(msg) from e

	if not isinstance(document, dict):
		msg = "Manifest must be a mapping with a top-level 'languages' list"
		raise ManifestParseError(msg)

	try:
		manifest = Manifest.model_validate(document)
	except ValidationError as e:
		msg = f"Invalid manifest: {e}"
		raise ManifestParseError(msg) from e

	check_unique_keys(manifest.languages)
	return manifest.languages


def load_manifest(path: Path) -> list[LanguageDescriptor]:
	"""
	Load the manifest file at ``path``.

	Raises:
	    ManifestParseError: If the file cannot be read or is not a valid manifest

	"""
	try:
		text = path.read_text(encoding="utf-8")
	except OSError as e:
		msg = f"Cannot read manifest {path}: {e}"
		raise ManifestParseError(msg) from e

	descriptors = parse_manifest(text)
	logger.info("Loaded %d languages from %s", len(descriptors), path.name)
	return descriptors
