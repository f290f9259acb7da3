"""
Code generation for the language registry.

This package renders the per-language namespaces and the perfect-hash
lookup table into a single Python module.

"""

from .generator import LanguageModule, ModuleGenerator, QueryTexts
from .phf_builder import PhfMapBuilder, generate_hash

__all__ = [
	"LanguageModule",
	"ModuleGenerator",
	"PhfMapBuilder",
	"QueryTexts",
	"generate_hash",
]
