"""grammarkit - build a constant-time registry of tree-sitter highlight configurations."""

from __future__ import annotations

__version__ = "0.1.0"
