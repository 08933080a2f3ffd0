"""
Main entry point for running tdfix as a module.

Usage:
    python -m tdfix <command> [options]
"""

from .cli import main
import sys

if __name__ == "__main__":
    sys.exit(main())
