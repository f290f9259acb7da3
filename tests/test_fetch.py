"""Tests for fetching and relocating grammar sources."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import Mock, patch

import pytest

from grammarkit.errors import FetchError, RelocationError
from grammarkit.fetch import FetchOrchestrator
from grammarkit.manifest import LanguageDescriptor

if TYPE_CHECKING:
	from collections.abc import Callable

	from grammarkit.config import BuildSettings


class FakeGit:
	"""Stands in for ``subprocess.Popen``, materializing a checkout on spawn."""

	def __init__(
		self,
		writer: Callable[..., Path],
		returncodes: dict[str, int] | None = None,
		without: tuple[str, ...] = (),
	) -> None:
		self.writer = writer
		self.returncodes = returncodes or {}
		self.without = without
		self.events: list[tuple[str, str]] = []
		self.commands: list[list[str]] = []

	def __call__(self, command: list[str], **kwargs: object) -> Mock:
		env = kwargs["env"]
		assert isinstance(env, dict)
		name = env["GRAMMARKIT_LANGUAGE"]
		staging = Path(env["GRAMMARKIT_STAGING_DIR"])
		self.commands.append(command)
		self.events.append(("spawn", name))

		queries = None if "queries" in self.without else {"highlights": "(identifier) @variable"}
		self.writer(
			staging,
			name,
			queries=queries,
			extra_files={"test/corpus/basic.txt": "corpus", "grammar.js": "module.exports = {}", "README.md": "x"},
		)
		if "src" in self.without:
			shutil.rmtree(staging / "src")

		process = Mock()

		def wait() -> int:
			self.events.append(("wait", name))
			return self.returncodes.get(name, 0)

		process.wait.side_effect = wait
		return process


def descriptor(name: str, **kwargs: object) -> LanguageDescriptor:
	kwargs.setdefault("repo", f"https://example/{name}")
	return LanguageDescriptor(name=name, **kwargs)


@pytest.mark.unit
@pytest.mark.fs
class TestFetchOrchestrator:
	"""Tests for FetchOrchestrator with a fake git."""

	def test_only_src_and_queries_survive(self, settings: BuildSettings, grammar_writer: Callable[..., Path]) -> None:
		"""Relocation keeps src/ and queries/ and drops the rest of the checkout."""
		# Arrange
		fake_git = FakeGit(grammar_writer)

		# Act
		with patch("grammarkit.fetch.subprocess.Popen", side_effect=fake_git):
			dirs = FetchOrchestrator(settings).fetch_all([descriptor("foo")])

		# Assert
		assert dirs == [settings.language_dir("foo")]
		assert sorted(p.name for p in settings.language_dir("foo").iterdir()) == ["queries", "src"]
		assert (settings.language_dir("foo") / "src" / "parser.c").is_file()
		assert (settings.language_dir("foo") / "queries" / "highlights.scm").is_file()
		assert not settings.staging_dir.exists()

	def test_all_fetches_spawn_before_any_wait(self, settings: BuildSettings, grammar_writer: Callable[..., Path]) -> None:
		fake_git = FakeGit(grammar_writer)
		with patch("grammarkit.fetch.subprocess.Popen", side_effect=fake_git):
			FetchOrchestrator(settings).fetch_all([descriptor("a"), descriptor("b"), descriptor("c")])

		assert fake_git.events == [
			("spawn", "a"),
			("spawn", "b"),
			("spawn", "c"),
			("wait", "a"),
			("wait", "b"),
			("wait", "c"),
		]

	def test_default_strategy_clones_into_staging(self, settings: BuildSettings, grammar_writer: Callable[..., Path]) -> None:
		fake_git = FakeGit(grammar_writer)
		with patch("grammarkit.fetch.subprocess.Popen", side_effect=fake_git):
			FetchOrchestrator(settings).fetch_all([descriptor("foo")])

		assert fake_git.commands == [
			["git", "clone", "--depth", "1", "--quiet", "https://example/foo", str(settings.staging_path("foo"))]
		]

	def test_custom_command_runs_through_shell(self, settings: BuildSettings) -> None:
		orchestrator = FetchOrchestrator(settings)
		command = orchestrator.fetch_command(descriptor("foo", repo=None, command="make fetch"))
		assert command == ["/bin/sh", "-c", "make fetch"]

	def test_existing_directories_are_wiped(self, settings: BuildSettings, grammar_writer: Callable[..., Path]) -> None:
		stale = settings.language_dir("gone") / "src"
		stale.mkdir(parents=True)
		leftover = settings.staging_path("foo") / "old"
		leftover.mkdir(parents=True)

		with patch("grammarkit.fetch.subprocess.Popen", side_effect=FakeGit(grammar_writer)):
			FetchOrchestrator(settings).fetch_all([descriptor("foo")])

		assert not settings.language_dir("gone").exists()
		assert not leftover.exists()

	def test_missing_queries_become_empty_directory(self, settings: BuildSettings, grammar_writer: Callable[..., Path]) -> None:
		with patch("grammarkit.fetch.subprocess.Popen", side_effect=FakeGit(grammar_writer, without=("queries",))):
			FetchOrchestrator(settings).fetch_all([descriptor("foo")])

		queries = settings.language_dir("foo") / "queries"
		assert queries.is_dir()
		assert list(queries.iterdir()) == []

	def test_missing_src_is_a_relocation_error(self, settings: BuildSettings, grammar_writer: Callable[..., Path]) -> None:
		with (
			patch("grammarkit.fetch.subprocess.Popen", side_effect=FakeGit(grammar_writer, without=("src",))),
			pytest.raises(RelocationError, match="no src directory"),
		):
			FetchOrchestrator(settings).fetch_all([descriptor("foo")])

	def test_failed_fetch_aborts(self, settings: BuildSettings, grammar_writer: Callable[..., Path]) -> None:
		fake_git = FakeGit(grammar_writer, returncodes={"bar": 128})
		with (
			patch("grammarkit.fetch.subprocess.Popen", side_effect=fake_git),
			pytest.raises(FetchError) as exc_info,
		):
			FetchOrchestrator(settings).fetch_all([descriptor("foo"), descriptor("bar"), descriptor("baz")])

		assert exc_info.value.language == "bar"
		assert exc_info.value.returncode == 128
		assert ("wait", "baz") not in fake_git.events

	def test_spawn_failure(self, settings: BuildSettings) -> None:
		settings.staging_dir.mkdir(parents=True)
		with (
			patch("grammarkit.fetch.subprocess.Popen", side_effect=FileNotFoundError("git")),
			pytest.raises(FetchError, match="Failed to start fetch"),
		):
			FetchOrchestrator(settings).spawn(descriptor("foo"))


@pytest.mark.integration
@pytest.mark.fs
@pytest.mark.skipif(not Path("/bin/sh").exists(), reason="/bin/sh not available")
def test_custom_shell_command_fetch(settings: BuildSettings) -> None:
	"""A real shell command sees the staging path and language in its environment."""
	command = (
		'mkdir -p "$GRAMMARKIT_STAGING_DIR/src" "$GRAMMARKIT_STAGING_DIR/docs" && '
		'printf "%s" "$GRAMMARKIT_LANGUAGE" > "$GRAMMARKIT_STAGING_DIR/src/parser.c"'
	)
	dirs = FetchOrchestrator(settings).fetch_all([descriptor("shelled", repo=None, command=command)])

	target = dirs[0]
	assert (target / "src" / "parser.c").read_text() == "shelled"
	assert (target / "queries").is_dir()
	assert not (target / "docs").exists()


@pytest.mark.integration
@pytest.mark.fs
@pytest.mark.skipif(not Path("/bin/sh").exists(), reason="/bin/sh not available")
def test_failing_shell_command(settings: BuildSettings) -> None:
	with pytest.raises(FetchError) as exc_info:
		FetchOrchestrator(settings).fetch_all([descriptor("broken", repo=None, command="exit 3")])
	assert exc_info.value.returncode == 3
