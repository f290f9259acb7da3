"""
Change tracking for compiled artifacts.

Each artifact owns one stamp file recording the digest of every
registered source and the exact command set used to build it. An
artifact is up to date while its output exists and the stamp matches.
Stamps are per artifact, so parallel compiles never share a file.

"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
	from collections.abc import Iterable
	from pathlib import Path

logger = logging.getLogger(__name__)

STAMP_SUFFIX = ".stamp.json"


def file_digest(path: Path) -> str:
	"""SHA-256 of a file's content."""
	digest = hashlib.sha256()
	with path.open("rb") as f:
		for block in iter(lambda: f.read(1 << 16), b""):
			digest.update(block)
	return digest.hexdigest()


class ChangeTracker:
	"""Decides whether an artifact must be rebuilt."""

	def __init__(self, stamp_dir: Path) -> None:
		self.stamp_dir = stamp_dir

	def stamp_path(self, artifact: str) -> Path:
		"""Stamp file of one artifact."""
		return self.stamp_dir / f"{artifact}{STAMP_SUFFIX}"

	@staticmethod
	def fingerprint(sources: Iterable[Path], commands: list[list[str]]) -> dict[str, object]:
		"""Current fingerprint of an artifact's inputs."""
		return {
			"sources": {str(source): file_digest(source) for source in sources},
			"commands": commands,
		}

	def register(self, artifact: str, sources: Iterable[Path]) -> tuple[Path, ...]:
		"""
		Declare the sources an artifact depends on.

		Returns:
		    The sources, in the order their digests enter the fingerprint

		"""
		registered = tuple(sources)
		for source in registered:
			logger.debug("%s: rerun-if-changed=%s", artifact, source)
		return registered

	def is_fresh(self, artifact: str, output: Path, fingerprint: dict[str, object]) -> bool:
		"""
		Check whether ``output`` was built from exactly these inputs.

		An unreadable or corrupt stamp counts as stale.

		"""
		stamp = self.stamp_path(artifact)
		if not output.exists() or not stamp.exists():
			return False
		try:
			recorded = json.loads(stamp.read_text(encoding="utf-8"))
		except (OSError, json.JSONDecodeError):
			logger.debug("Ignoring unreadable stamp %s", stamp)
			return False
		return recorded == fingerprint

	def record(self, artifact: str, fingerprint: dict[str, object]) -> None:
		"""Store the fingerprint of a freshly built artifact."""
		stamp = self.stamp_path(artifact)
		stamp.parent.mkdir(parents=True, exist_ok=True)
		stamp.write_text(json.dumps(fingerprint, indent=2, sort_keys=True), encoding="utf-8")

	def invalidate(self, artifact: str) -> None:
		"""Forget an artifact's stamp so the next build recompiles it."""
		self.stamp_path(artifact).unlink(missing_ok=True)
