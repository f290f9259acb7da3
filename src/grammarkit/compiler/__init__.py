"""Native compilation of grammar sources."""

from .native import CompiledArtifact, NativeCompiler
from .scanner import ScannerKind, detect_scanner
from .toolchain import CompileJob, Toolchain
from .tracking import ChangeTracker

__all__ = [
	"ChangeTracker",
	"CompileJob",
	"CompiledArtifact",
	"NativeCompiler",
	"ScannerKind",
	"Toolchain",
	"detect_scanner",
]
