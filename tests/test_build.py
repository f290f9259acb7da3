"""End-to-end tests for the build driver."""

from __future__ import annotations

import importlib.util
import shutil
import sys
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import Mock, patch

import pytest

from grammarkit.build import main, regeneration_requested, run_build
from grammarkit.compiler import Toolchain
from grammarkit.config import REBUILD_ENV_VAR, VERBOSE_ENV_VAR
from grammarkit.errors import ManifestParseError

if TYPE_CHECKING:
	from collections.abc import Callable

	from grammarkit.config import BuildSettings

HAS_TOOLCHAIN = all(shutil.which(tool) for tool in ("cc", "c++", "ar"))

FOO_MANIFEST = """
languages:
  - name: foo
    repo: https://example/foo
    aliases: [fbar]
"""


def fake_git(writer: Callable[..., Path]) -> Callable[..., Mock]:
	"""Popen replacement producing a bare checkout with only ``src``."""

	def _popen(command: list[str], **kwargs: object) -> Mock:
		env = kwargs["env"]
		assert isinstance(env, dict)
		writer(Path(env["GRAMMARKIT_STAGING_DIR"]), env["GRAMMARKIT_LANGUAGE"], extra_files={"LICENSE": "MIT"})
		process = Mock()
		process.wait.return_value = 0
		return process

	return _popen


def fake_toolchain_run(command: list[str]) -> str:
	"""Create each command's output file instead of running it."""
	if "-o" in command:
		output = Path(command[command.index("-o") + 1])
	else:
		output = Path(command[2])
	output.parent.mkdir(parents=True, exist_ok=True)
	output.write_bytes(b"")
	return ""


def load_module(path: Path) -> object:
	spec = importlib.util.spec_from_file_location("built_languages", path)
	assert spec is not None
	assert spec.loader is not None
	module = importlib.util.module_from_spec(spec)
	spec.loader.exec_module(module)
	sys.modules.pop("built_languages", None)
	return module


@pytest.fixture
def foo_project(settings: BuildSettings) -> BuildSettings:
	settings.manifest_path.write_text(FOO_MANIFEST)
	return settings


@pytest.mark.unit
class TestRegenerationRequested:
	"""The rebuild variable only needs to be present."""

	def test_absent(self) -> None:
		assert regeneration_requested({}) is False

	@pytest.mark.parametrize("value", ["", "0", "1", "yes"])
	def test_present(self, value: str) -> None:
		assert regeneration_requested({REBUILD_ENV_VAR: value}) is True


@pytest.mark.unit
@pytest.mark.fs
class TestRunBuild:
	"""Tests for run_build with fake git and toolchain."""

	def test_foo_end_to_end(self, foo_project: BuildSettings, grammar_writer) -> None:
		"""A bare grammar with one alias is fetched, generated, compiled and linked."""
		# Arrange
		settings = foo_project

		# Act
		with (
			patch("grammarkit.fetch.subprocess.Popen", side_effect=fake_git(grammar_writer)),
			patch.object(Toolchain, "run", side_effect=fake_toolchain_run),
		):
			result = run_build(settings, regenerate=True)

		# Assert
		foo_dir = settings.language_dir("foo")
		assert (foo_dir / "src").is_dir()
		assert (foo_dir / "queries").is_dir()
		assert not (foo_dir / "LICENSE").exists()

		assert [a.name for a in result.artifacts] == ["foo-parser"]
		assert result.artifacts[0].path.is_file()
		assert result.library_path == settings.library_path
		assert result.library_path.is_file()

		assert result.generated_path == settings.output_path
		module = load_module(result.generated_path)
		assert module.foo.HIGHLIGHT_QUERY == ""
		assert module.LANG_MAP["foo"] is module.LANG_MAP["fbar"]
		assert module.LANG_MAP["foo"] is module.foo.config

	def test_compile_only_build_leaves_sources_alone(
		self, foo_project: BuildSettings, canonical_grammar
	) -> None:
		canonical_grammar("foo")
		popen = Mock()

		with (
			patch("grammarkit.fetch.subprocess.Popen", popen),
			patch.object(Toolchain, "run", side_effect=fake_toolchain_run),
		):
			result = run_build(foo_project, regenerate=False)

		popen.assert_not_called()
		assert result.generated_path is None
		assert not foo_project.output_path.exists()
		assert [a.name for a in result.artifacts] == ["foo-parser"]

	def test_second_build_is_up_to_date(self, foo_project: BuildSettings, canonical_grammar) -> None:
		canonical_grammar("foo", scanner="c")
		with patch.object(Toolchain, "run", side_effect=fake_toolchain_run) as run:
			run_build(foo_project, regenerate=False)
			run.reset_mock()
			result = run_build(foo_project, regenerate=False)

		run.assert_not_called()
		assert not any(a.rebuilt for a in result.artifacts)

	def test_regeneration_follows_environment(
		self, foo_project: BuildSettings, monkeypatch: pytest.MonkeyPatch
	) -> None:
		monkeypatch.delenv(REBUILD_ENV_VAR, raising=False)
		result = run_build(foo_project)
		assert result.regenerated is False
		assert result.artifacts == []
		assert result.library_path is None

	def test_invalid_manifest(self, settings: BuildSettings) -> None:
		settings.manifest_path.write_text("languages: 3\n")
		with pytest.raises(ManifestParseError):
			run_build(settings, regenerate=False)


@pytest.mark.unit
@pytest.mark.fs
class TestMain:
	"""Tests for the process entry point."""

	@pytest.fixture(autouse=True)
	def _quiet(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
		monkeypatch.chdir(tmp_path)
		monkeypatch.delenv(REBUILD_ENV_VAR, raising=False)
		with patch("grammarkit.build.setup_logging"):
			yield

	def test_success(self, tmp_path: Path) -> None:
		(tmp_path / "languages.yml").write_text("languages: []\n")
		assert main() == 0

	def test_failure_shows_summary(self, tmp_path: Path) -> None:
		with patch("grammarkit.build.display_error_summary") as summary:
			assert main() == 1
		summary.assert_called_once()
		assert "Cannot read manifest" in summary.call_args.args[0]

	def test_verbose_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
		monkeypatch.setenv(VERBOSE_ENV_VAR, "")
		(tmp_path / "languages.yml").write_text("languages: []\n")
		with patch("grammarkit.build.setup_logging") as setup:
			assert main() == 0
		setup.assert_called_once_with(is_verbose=True)

	def test_dotenv_is_loaded(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
		monkeypatch.delenv("GRAMMARKIT_JOBS", raising=False)
		(tmp_path / "languages.yml").write_text("languages: []\n")
		(tmp_path / ".env").write_text("GRAMMARKIT_JOBS=not-a-number\n")
		with patch("grammarkit.build.display_error_summary") as summary:
			assert main() == 1
		assert "jobs" in summary.call_args.args[0]


@pytest.mark.integration
@pytest.mark.fs
@pytest.mark.skipif(not HAS_TOOLCHAIN or not Path("/bin/sh").exists(), reason="C toolchain or /bin/sh not available")
def test_real_build_with_shell_fetch(settings: BuildSettings) -> None:
	"""A shell-fetched grammar compiles and links with the system toolchain."""
	settings.manifest_path.write_text(
		"""
languages:
  - name: tiny
    aliases: [tn]
    command: >-
      mkdir -p "$GRAMMARKIT_STAGING_DIR/src" "$GRAMMARKIT_STAGING_DIR/queries"
      && printf 'const void *tree_sitter_tiny(void) { static int x; return &x; }\\n'
      > "$GRAMMARKIT_STAGING_DIR/src/parser.c"
      && printf '(x) @y' > "$GRAMMARKIT_STAGING_DIR/queries/highlights.scm"
"""
	)

	result = run_build(settings, regenerate=True)

	assert [a.name for a in result.artifacts] == ["tiny-parser"]
	assert result.library_path is not None
	assert result.library_path.is_file()
	module = load_module(settings.output_path)
	assert module.tiny.HIGHLIGHT_QUERY == "(x) @y"
	assert module.LANG_MAP["tn"] is module.tiny.config
