"""
Fetching grammar sources into canonical language directories.

All fetches are spawned before any is awaited, so a regeneration pass
takes as long as the slowest fetch rather than the sum of all of them.
Any failure aborts the pass; fetches already in flight are left to
finish on their own.

"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING

from grammarkit.errors import FetchError, RelocationError
from grammarkit.utils.path_utils import display_path, remove_tree

if TYPE_CHECKING:
	from pathlib import Path

	from grammarkit.config import BuildSettings
	from grammarkit.manifest import LanguageDescriptor

logger = logging.getLogger(__name__)

# Only these subtrees of a fetched repository are kept
KEPT_SUBTREES = ("src", "queries")


@dataclass
class PendingFetch:
	"""A spawned fetch that has not been awaited yet."""

	descriptor: LanguageDescriptor
	process: subprocess.Popen
	staging_path: Path


class FetchOrchestrator:
	"""Resolves every language of the manifest into its canonical directory."""

	def __init__(self, settings: BuildSettings) -> None:
		self.settings = settings

	def fetch_all(self, descriptors: list[LanguageDescriptor]) -> list[Path]:
		"""
		Fetch every language and relocate its sources.

		Existing canonical directories are wiped before anything is
		fetched, so a failed pass leaves them missing.

		Args:
		    descriptors: Languages to fetch

		Returns:
		    Canonical directories, in manifest order

		Raises:
		    FetchError: If a fetch cannot be spawned or exits unsuccessfully
		    RelocationError: If fetched sources cannot be moved into place

		"""
		self._reset_directories()

		pending = [self.spawn(descriptor) for descriptor in descriptors]
		logger.info("Spawned %d fetches", len(pending))

		canonical_dirs = []
		for fetch in pending:
			self.wait(fetch)
			canonical_dirs.append(self.relocate(fetch.descriptor, fetch.staging_path))

		try:
			remove_tree(self.settings.staging_dir)
		except OSError as e:
			msg = f"Failed to remove staging directory {self.settings.staging_dir}: {e}"
			raise RelocationError(msg) from e
		return canonical_dirs

	def _reset_directories(self) -> None:
		languages_dir = self.settings.languages_dir
		try:
			remove_tree(languages_dir)
			remove_tree(self.settings.staging_dir)
			self.settings.staging_dir.mkdir(parents=True)
		except OSError as e:
			msg = f"Failed to reset {languages_dir}: {e}"
			raise RelocationError(msg) from e
		logger.debug("Reset %s", languages_dir)

	def fetch_command(self, descriptor: LanguageDescriptor) -> list[str]:
		"""
		Command line fetching one language into its staging path.

		A custom ``command`` runs verbatim through the shell; otherwise the
		repository is cloned with git.

		"""
		if descriptor.command:
			return ["/bin/sh", "-c", descriptor.command]
		staging_path = self.settings.staging_path(descriptor.name)
		return ["git", "clone", "--depth", "1", "--quiet", str(descriptor.repo), str(staging_path)]

	def spawn(self, descriptor: LanguageDescriptor) -> PendingFetch:
		"""
		Start fetching one language without waiting for it.

		Raises:
		    FetchError: If the process cannot be started

		"""
		staging_path = self.settings.staging_path(descriptor.name)
		command = self.fetch_command(descriptor)
		env = {
			**os.environ,
			"GRAMMARKIT_LANGUAGE": descriptor.name,
			"GRAMMARKIT_STAGING_DIR": str(staging_path),
		}
		source = "custom command" if descriptor.command else descriptor.repo
		logger.info("Fetching [bold]%s[/bold] from %s", descriptor.name, source)
		try:
			# The custom command comes from the manifest, which is trusted build input
			process = subprocess.Popen(  # noqa: S603
				command,
				cwd=self.settings.project_root,
				env=env,
				stdin=subprocess.DEVNULL,
			)
		except OSError as e:
			msg = f"Failed to start fetch for {descriptor.name!r}: {e}"
			logger.exception(msg)
			raise FetchError(descriptor.name, msg) from e
		return PendingFetch(descriptor=descriptor, process=process, staging_path=staging_path)

	@staticmethod
	def wait(fetch: PendingFetch) -> None:
		"""
		Block until a spawned fetch exits.

		Raises:
		    FetchError: If the fetch exited with a non-zero status

		"""
		returncode = fetch.process.wait()
		if returncode != 0:
			name = fetch.descriptor.name
			msg = f"Fetch for {name!r} failed with exit status {returncode}"
			logger.error(msg)
			raise FetchError(name, msg, returncode=returncode)

	def relocate(self, descriptor: LanguageDescriptor, staging_path: Path) -> Path:
		"""
		Move the grammar sources and queries of one language into place.

		Everything else fetched (tests, bindings, build metadata) is
		discarded together with the staging path.

		Raises:
		    RelocationError: If ``src`` is missing or a move fails

		"""
		target = self.settings.language_dir(descriptor.name)
		source_dir = staging_path / "src"
		if not source_dir.is_dir():
			msg = f"Fetched sources for {descriptor.name!r} have no src directory at {source_dir}"
			raise RelocationError(msg)

		try:
			target.mkdir(parents=True, exist_ok=True)
			for subtree in KEPT_SUBTREES:
				fetched = staging_path / subtree
				if fetched.is_dir():
					shutil.move(fetched, target / subtree)
				else:
					logger.debug("%s has no %s directory", descriptor.name, subtree)
					(target / subtree).mkdir()
			shutil.rmtree(staging_path)
		except OSError as e:
			msg = f"Failed to relocate {descriptor.name!r} into {target}: {e}"
			logger.exception(msg)
			raise RelocationError(msg) from e

		logger.info(
			"Relocated [bold]%s[/bold] into %s",
			descriptor.name,
			display_path(target, self.settings.project_root),
		)
		return target
