"""
Build driver for grammarkit.

Compilation runs on every build. Fetching and registry generation only
run when ``GRAMMARKIT_REBUILD_LANGS`` is set, so ordinary builds never
touch the network::

	GRAMMARKIT_REBUILD_LANGS=1 python -m grammarkit   # fetch, generate, compile
	python -m grammarkit                              # compile only

"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from grammarkit.codegen import ModuleGenerator
from grammarkit.compiler import CompiledArtifact, NativeCompiler
from grammarkit.config import REBUILD_ENV_VAR, VERBOSE_ENV_VAR, ConfigLoader
from grammarkit.errors import GrammarkitError
from grammarkit.fetch import FetchOrchestrator
from grammarkit.manifest import load_manifest
from grammarkit.utils.log_setup import display_error_summary, setup_logging

if TYPE_CHECKING:
	from collections.abc import Mapping

	from grammarkit.config import BuildSettings
	from grammarkit.manifest import LanguageDescriptor

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
	"""Outcome of one build."""

	descriptors: list[LanguageDescriptor]
	artifacts: list[CompiledArtifact] = field(default_factory=list)
	regenerated: bool = False
	generated_path: Path | None = None
	library_path: Path | None = None


def regeneration_requested(environ: Mapping[str, str] | None = None) -> bool:
	"""Whether the fetch and generate pass should run."""
	environ = os.environ if environ is None else environ
	return REBUILD_ENV_VAR in environ


def run_build(settings: BuildSettings, regenerate: bool | None = None) -> BuildResult:
	"""
	Run one build.

	Args:
	    settings: Resolved build settings
	    regenerate: Force the fetch and generate pass on or off; by default
	        it follows ``GRAMMARKIT_REBUILD_LANGS``

	Returns:
	    BuildResult describing what was produced

	Raises:
	    GrammarkitError: The first failure of any stage

	"""
	descriptors = load_manifest(settings.manifest_path)
	if regenerate is None:
		regenerate = regeneration_requested()

	result = BuildResult(descriptors=descriptors, regenerated=regenerate)
	if regenerate:
		logger.info("Regenerating %d languages", len(descriptors))
		FetchOrchestrator(settings).fetch_all(descriptors)
		result.generated_path = ModuleGenerator(settings).generate(descriptors)

	compiler = NativeCompiler(settings)
	result.artifacts = compiler.compile_all(descriptors)
	result.library_path = compiler.link(result.artifacts)
	return result


def _load_dotenv() -> None:
	from dotenv import load_dotenv

	# Try to load from .env.local first, then fall back to .env
	env_local = Path(".env.local")
	if env_local.exists():
		load_dotenv(dotenv_path=env_local)
		logger.debug("Loaded environment variables from %s", env_local)
	else:
		env_file = Path(".env")
		if env_file.exists():
			load_dotenv(dotenv_path=env_file)
			logger.debug("Loaded environment variables from %s", env_file)


def main(config_file: Path | None = None) -> int:
	"""
	Process entry point.

	Returns:
	    Exit status: 0 on success, 1 on any build failure

	"""
	_load_dotenv()
	setup_logging(is_verbose=VERBOSE_ENV_VAR in os.environ)

	try:
		settings = ConfigLoader(config_file).get
		result = run_build(settings)
	except GrammarkitError as e:
		logger.debug("Build failed", exc_info=True)
		display_error_summary(str(e))
		return 1

	rebuilt = sum(artifact.rebuilt for artifact in result.artifacts)
	logger.info(
		"Build finished: %d artifacts (%d rebuilt)%s",
		len(result.artifacts),
		rebuilt,
		", registry regenerated" if result.regenerated else "",
	)
	return 0
