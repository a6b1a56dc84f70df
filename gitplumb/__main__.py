"""Entry point for running gitplumb as a module.

This module allows gitplumb to be run as a Python module using the -m flag:
    python -m gitplumb
"""

from . import cli

if __name__ == "__main__":
    cli._main()
