"""Build settings for grammarkit."""

from .config_loader import DEFAULT_CONFIG_FILE, ConfigLoader
from .config_schema import BuildSettings

REBUILD_ENV_VAR = "GRAMMARKIT_REBUILD_LANGS"
VERBOSE_ENV_VAR = "GRAMMARKIT_VERBOSE"

__all__ = [
	"DEFAULT_CONFIG_FILE",
	"REBUILD_ENV_VAR",
	"VERBOSE_ENV_VAR",
	"BuildSettings",
	"ConfigLoader",
]
