"""
Main entry point for running the package as a module.

Usage:
    python -m layerbatch generate --layer background --layer body
    python -m layerbatch upload
    python -m layerbatch run --layer background --layer body
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
