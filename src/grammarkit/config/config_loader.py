"""
Configuration loader for grammarkit.

This module resolves the build settings file, applies environment
overrides for the toolchain, and validates the result into
:class:`BuildSettings`.

"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from grammarkit.config.config_schema import BuildSettings
from grammarkit.errors import ConfigParsingError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".grammarkit.yml"

# Environment variable -> settings field
ENV_OVERRIDES: dict[str, str] = {
	"CC": "cc",
	"CXX": "cxx",
	"AR": "ar",
	"GRAMMARKIT_JOBS": "jobs",
}


class ConfigLoader:
	"""
	Loads build settings for one project.

	Settings come from, in increasing priority: schema defaults, the
	settings file, and the environment overrides in ``ENV_OVERRIDES``.

	"""

	def __init__(
		self,
		config_file: Path | None = None,
		project_root: Path | None = None,
		environ: dict[str, str] | None = None,
	) -> None:
		"""
		Initialize the configuration loader.

		Args:
			config_file: Path to a settings file (optional)
			project_root: Directory relative paths are resolved against,
				defaults to the current directory
			environ: Environment to read overrides from, defaults to ``os.environ``

		"""
		self.project_root = (project_root or Path.cwd()).expanduser().resolve()
		self._environ = os.environ if environ is None else environ
		self._resolved_config_file = self._resolve_config_file(config_file)
		self._settings = self._load_config()

	def _resolve_config_file(self, config_file: Path | None = None) -> Path | None:
		"""
		Resolve the settings file path.

		An explicit file must exist. Otherwise ``.grammarkit.yml`` in the
		project root is used when present.

		Raises:
			ConfigParsingError: If an explicitly given file does not exist

		"""
		if config_file:
			path = config_file.expanduser()
			if not path.is_absolute():
				path = self.project_root / path
			if not path.exists():
				msg = f"Configuration file not found: {path}"
				raise ConfigParsingError(msg)
			return path

		local_config = self.project_root / DEFAULT_CONFIG_FILE
		if local_config.exists():
			return local_config
		return None

	@staticmethod
	def _parse_yaml_file(file_path: Path) -> dict[str, Any]:
		"""
		Parse a YAML settings file.

		Raises:
			yaml.YAMLError: If the file is not a valid YAML mapping

		"""
		with file_path.open(encoding="utf-8") as f:
			content = yaml.safe_load(f)
		if content is None:
			return {}
		if not isinstance(content, dict):
			msg = f"File {file_path} does not contain a valid YAML dictionary"
			raise yaml.YAMLError(msg)
		return content

	def _env_overrides(self) -> dict[str, str]:
		overrides = {}
		for env_var, field_name in ENV_OVERRIDES.items():
			value = self._environ.get(env_var)
			if value:
				logger.debug("Using %s=%s from the environment", env_var, value)
				overrides[field_name] = value
		return overrides

	def _load_config(self) -> BuildSettings:
		"""
		Load settings from file and environment.

		Raises:
			ConfigParsingError: If the file cannot be read or parsed, or the
				merged values fail validation

		"""
		file_config: dict[str, Any] = {}
		if self._resolved_config_file:
			try:
				file_config = self._parse_yaml_file(self._resolved_config_file)
			except yaml.YAMLError as e:
				msg = f"Configuration file {self._resolved_config_file} does not contain a valid YAML dictionary."
				logger.exception(msg)
				raise ConfigParsingError(msg) from e
			except OSError as e:
				msg = f"Error accessing configuration file {self._resolved_config_file}: {e}"
				logger.exception(msg)
				raise ConfigParsingError(msg) from e
			logger.debug("Loaded configuration from %s", self._resolved_config_file)

		merged = {**file_config, **self._env_overrides(), "project_root": self.project_root}
		try:
			settings = BuildSettings(**merged)
		except ValidationError as e:
			msg = f"Error parsing configuration into schema: {e}"
			logger.exception(msg)
			raise ConfigParsingError(msg) from e
		return settings.resolve_paths()

	@property
	def config_file(self) -> Path | None:
		"""The settings file that was loaded, if any."""
		return self._resolved_config_file

	@property
	def get(self) -> BuildSettings:
		"""
		Get the loaded build settings.

		Returns:
			BuildSettings: The settings with absolute paths

		"""
		return self._settings
