"""Schema for the grammarkit build settings."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from grammarkit.utils.path_utils import library_filename


def _default_jobs() -> int:
	return os.cpu_count() or 1


class BuildSettings(BaseModel):
	"""
	Settings for one grammarkit build.

	Relative paths are resolved against ``project_root`` by
	:meth:`resolve_paths`, which the config loader always calls.

	"""

	model_config = ConfigDict(frozen=True, extra="forbid")

	project_root: Path = Field(default_factory=Path.cwd)
	manifest_path: Path = Path("languages.yml")
	languages_dir: Path = Path("languages")
	staging_dir: Path = Path("languages/.staging")
	output_path: Path = Path("src/grammarkit/languages.py")
	build_dir: Path = Path("build")
	library_path: Path = Field(default_factory=lambda: Path("src/grammarkit") / library_filename())
	query_extension: str = "scm"
	jobs: int = Field(default_factory=_default_jobs, ge=1)
	cc: str = "cc"
	cxx: str = "c++"
	ar: str = "ar"

	@field_validator("query_extension")
	@classmethod
	def _strip_dot(cls, value: str) -> str:
		"""Accept ``.scm`` as well as ``scm``."""
		value = value.lstrip(".")
		if not value:
			msg = "query_extension must not be empty"
			raise ValueError(msg)
		return value

	def resolve_paths(self) -> BuildSettings:
		"""Return a copy with every path made absolute against ``project_root``."""
		root = self.project_root.expanduser().resolve()
		updates: dict[str, Path] = {"project_root": root}
		for field_name in (
			"manifest_path",
			"languages_dir",
			"staging_dir",
			"output_path",
			"build_dir",
			"library_path",
		):
			path: Path = getattr(self, field_name)
			updates[field_name] = path if path.is_absolute() else root / path
		return self.model_copy(update=updates)

	def language_dir(self, name: str) -> Path:
		"""Canonical directory of one language."""
		return self.languages_dir / name

	def staging_path(self, name: str) -> Path:
		"""Staging directory one language is fetched into."""
		return self.staging_dir / name
