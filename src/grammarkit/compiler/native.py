"""
Native compilation of grammar sources.

Every language compiles on its own worker with no shared state: its
sources live in its own canonical directory, and its objects, archives
and stamps are named after it. The first failing language aborts the
build and cancels every compile that has not started yet.

"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TYPE_CHECKING

from grammarkit.compiler.scanner import C_SCANNER_FILE, CPP_SCANNER_FILE, PARSER_FILE, ScannerKind, detect_scanner
from grammarkit.compiler.toolchain import CompileJob, Toolchain
from grammarkit.compiler.tracking import ChangeTracker
from grammarkit.errors import CompileError

if TYPE_CHECKING:
	from pathlib import Path

	from grammarkit.config import BuildSettings
	from grammarkit.manifest import LanguageDescriptor

logger = logging.getLogger(__name__)

# Generated parser tables are large; C++ scanners are small hand-written code
PARSER_OPT_LEVEL = "-O1"
CPP_SCANNER_OPT_LEVEL = "-O2"

LINK_STAMP = "_link"


@dataclass(frozen=True)
class CompiledArtifact:
	"""A static archive built for one language."""

	language: str
	name: str
	path: Path
	sources: tuple[Path, ...]
	rebuilt: bool


class NativeCompiler:
	"""Compiles the grammars of every fetched language."""

	def __init__(self, settings: BuildSettings, toolchain: Toolchain | None = None) -> None:
		self.settings = settings
		self.toolchain = toolchain or Toolchain(
			cc=settings.cc,
			cxx=settings.cxx,
			ar=settings.ar,
			build_dir=settings.build_dir,
		)
		self.tracker = ChangeTracker(settings.build_dir / "stamps")

	def plan(self, descriptor: LanguageDescriptor) -> list[CompileJob]:
		"""
		Compile jobs for one language, chosen by its scanner.

		- no scanner: the parser alone
		- C scanner: parser and scanner in one archive
		- C++ scanner: the scanner in its own C++ archive, then the parser alone

		"""
		name = descriptor.name
		src_dir = self.settings.language_dir(name) / "src"
		parser = src_dir / PARSER_FILE
		includes = (src_dir,)
		kind = detect_scanner(src_dir)

		if kind is ScannerKind.CPP:
			return [
				CompileJob(
					artifact=f"{name}-scanner",
					sources=(src_dir / CPP_SCANNER_FILE,),
					include_dirs=includes,
					opt_level=CPP_SCANNER_OPT_LEVEL,
					cpp=True,
				),
				CompileJob(artifact=f"{name}-parser", sources=(parser,), include_dirs=includes, opt_level=PARSER_OPT_LEVEL),
			]
		if kind is ScannerKind.C:
			sources = (parser, src_dir / C_SCANNER_FILE)
		else:
			sources = (parser,)
		return [CompileJob(artifact=f"{name}-parser", sources=sources, include_dirs=includes, opt_level=PARSER_OPT_LEVEL)]

	def build_job(self, language: str, job: CompileJob) -> CompiledArtifact:
		"""
		Build one job unless its archive is up to date.

		Raises:
		    CompileError: If the toolchain fails or inputs cannot be read

		"""
		sources = self.tracker.register(job.artifact, job.sources)
		archive = self.toolchain.archive_path(job.artifact)
		try:
			fingerprint = self.tracker.fingerprint(sources, self.toolchain.commands(job))
			if self.tracker.is_fresh(job.artifact, archive, fingerprint):
				logger.debug("%s is up to date", job.artifact)
				return CompiledArtifact(language, job.artifact, archive, job.sources, rebuilt=False)

			self.tracker.invalidate(job.artifact)
			self.toolchain.build(job)
			self.tracker.record(job.artifact, fingerprint)
		except OSError as e:
			msg = f"Failed to build {job.artifact}: {e}"
			raise CompileError(msg) from e

		logger.info("Compiled [bold]%s[/bold]", job.artifact)
		return CompiledArtifact(language, job.artifact, archive, job.sources, rebuilt=True)

	def compile_language(self, descriptor: LanguageDescriptor) -> list[CompiledArtifact]:
		"""
		Compile one language's grammar.

		Raises:
		    CompileError: If the parser source is missing or the toolchain fails

		"""
		parser = self.settings.language_dir(descriptor.name) / "src" / PARSER_FILE
		if not parser.is_file():
			msg = f"Missing generated parser for {descriptor.name!r}: {parser}"
			raise CompileError(msg)
		return [self.build_job(descriptor.name, job) for job in self.plan(descriptor)]

	def compile_all(self, descriptors: list[LanguageDescriptor]) -> list[CompiledArtifact]:
		"""
		Compile every language with a canonical directory, in parallel.

		Returns:
		    Artifacts grouped by language in manifest order

		Raises:
		    CompileError: The first failure observed

		"""
		present = []
		for descriptor in descriptors:
			if self.settings.language_dir(descriptor.name).is_dir():
				present.append(descriptor)
			else:
				logger.warning("Skipping %s: no canonical directory, run a regeneration first", descriptor.name)
		if not present:
			return []

		self.settings.build_dir.mkdir(parents=True, exist_ok=True)
		results: dict[str, list[CompiledArtifact]] = {}
		workers = min(self.settings.jobs, len(present))
		with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="grammarkit-cc") as executor:
			futures = {executor.submit(self.compile_language, descriptor): descriptor for descriptor in present}
			try:
				for future in as_completed(futures):
					results[futures[future].name] = future.result()
			except Exception:
				for future in futures:
					future.cancel()
				raise

		return [artifact for descriptor in present for artifact in results[descriptor.name]]

	def link(self, artifacts: list[CompiledArtifact]) -> Path | None:
		"""
		Link every archive into the shared library loaded at runtime.

		Relinks only when an archive or the link command changed.

		Returns:
		    The library path, or None when there is nothing to link

		Raises:
		    CompileError: If the linker fails

		"""
		if not artifacts:
			logger.info("No compiled grammars to link")
			return None

		output = self.settings.library_path
		archives = [artifact.path for artifact in artifacts]
		command = self.toolchain.link_command(archives, output)
		try:
			fingerprint = self.tracker.fingerprint(self.tracker.register(LINK_STAMP, archives), [command])
			if self.tracker.is_fresh(LINK_STAMP, output, fingerprint):
				logger.debug("%s is up to date", output.name)
				return output
			self.tracker.invalidate(LINK_STAMP)
			self.toolchain.link(archives, output)
			self.tracker.record(LINK_STAMP, fingerprint)
		except OSError as e:
			msg = f"Failed to link {output}: {e}"
			raise CompileError(msg) from e

		logger.info("Linked %d archives into [bold]%s[/bold]", len(archives), output.name)
		return output
