"""Thin wrapper around the C/C++ compiler, archiver and linker."""

from __future__ import annotations

import logging
import subprocess
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

from grammarkit.errors import CompileError

if TYPE_CHECKING:
	from pathlib import Path

logger = logging.getLogger(__name__)

COMMON_FLAGS = ("-w", "-fPIC")


@dataclass(frozen=True)
class CompileJob:
	"""Sources compiled together into one static archive."""

	artifact: str
	sources: tuple[Path, ...]
	include_dirs: tuple[Path, ...]
	opt_level: str
	cpp: bool = False


class Toolchain:
	"""Runs compiler, archiver and linker commands for grammar builds."""

	def __init__(self, cc: str, cxx: str, ar: str, build_dir: Path, platform: str | None = None) -> None:
		self.cc = cc
		self.cxx = cxx
		self.ar = ar
		self.build_dir = build_dir
		self.platform = platform or sys.platform

	def archive_path(self, artifact: str) -> Path:
		"""Static archive produced for ``artifact``."""
		return self.build_dir / f"lib{artifact}.a"

	def object_dir(self, artifact: str) -> Path:
		"""Directory holding the object files of ``artifact``."""
		return self.build_dir / "obj" / artifact

	def object_path(self, job: CompileJob, source: Path) -> Path:
		return self.object_dir(job.artifact) / f"{source.name}.o"

	def compile_command(self, job: CompileJob, source: Path) -> list[str]:
		"""Command compiling one source of ``job`` into an object file."""
		compiler = self.cxx if job.cpp else self.cc
		command = [compiler, "-c", *COMMON_FLAGS, job.opt_level]
		for include_dir in job.include_dirs:
			command.extend(["-I", str(include_dir)])
		command.extend(["-o", str(self.object_path(job, source)), str(source)])
		return command

	def archive_command(self, job: CompileJob) -> list[str]:
		"""Command bundling the objects of ``job`` into its archive."""
		objects = [str(self.object_path(job, source)) for source in job.sources]
		return [self.ar, "crs", str(self.archive_path(job.artifact)), *objects]

	def commands(self, job: CompileJob) -> list[list[str]]:
		"""Every command building ``job``, in order."""
		return [*(self.compile_command(job, source) for source in job.sources), self.archive_command(job)]

	def build(self, job: CompileJob) -> Path:
		"""
		Compile and archive one job.

		Returns:
		    Path of the static archive

		Raises:
		    CompileError: If any command fails

		"""
		self.object_dir(job.artifact).mkdir(parents=True, exist_ok=True)
		archive = self.archive_path(job.artifact)
		archive.unlink(missing_ok=True)
		for command in self.commands(job):
			self.run(command)
		return archive

	def link_command(self, archives: list[Path], output: Path) -> list[str]:
		"""Command linking every archive, whole, into one shared library."""
		if self.platform == "darwin":
			loads = [f"-Wl,-force_load,{archive}" for archive in archives]
			return [self.cxx, "-dynamiclib", "-o", str(output), *loads]
		return [
			self.cxx,
			"-shared",
			"-o",
			str(output),
			"-Wl,--whole-archive",
			*(str(archive) for archive in archives),
			"-Wl,--no-whole-archive",
		]

	def link(self, archives: list[Path], output: Path) -> Path:
		"""
		Link archives into a shared library.

		Raises:
		    CompileError: If the linker fails

		"""
		output.parent.mkdir(parents=True, exist_ok=True)
		self.run(self.link_command(archives, output))
		return output

	@staticmethod
	def run(command: list[str]) -> str:
		"""
		Run one toolchain command.

		Raises:
		    CompileError: If the tool is missing or exits unsuccessfully

		"""
		logger.debug("Running: %s", " ".join(command))
		try:
			result = subprocess.run(  # noqa: S603
				command,
				capture_output=True,
				text=True,
				check=True,
			)
		except FileNotFoundError as e:
			msg = f"Toolchain program not found: {command[0]}"
			raise CompileError(msg, command=command) from e
		except subprocess.CalledProcessError as e:
			msg = f"Toolchain command failed: {' '.join(command)}\nError: {e.stderr}"
			raise CompileError(msg, command=command, stderr=e.stderr or "") from e
		return result.stdout
