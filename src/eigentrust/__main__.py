"""Entry point for running the trust score job as a module.

Usage:
    python -m eigentrust --help
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
