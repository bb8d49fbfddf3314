"""
Entry point for running the zigkit CLI as a module.

Usage: python -m zigkit.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
