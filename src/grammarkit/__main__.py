"""Run a grammarkit build: ``python -m grammarkit``."""

import sys

from grammarkit.build import main

if __name__ == "__main__":
	sys.exit(main())
