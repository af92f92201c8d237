"""
Main entry point for running kmsenv as a module.

Usage:
    python -m kmsenv <command> [options]
"""

from .cli import main
import sys

if __name__ == "__main__":
    sys.exit(main())
