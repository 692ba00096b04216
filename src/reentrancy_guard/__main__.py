"""
Entry point for module execution (``python -m reentrancy_guard``).

This module delegates execution to the CLI handler in ``reentrancy_guard.cli.__main__``.
"""

import sys
from reentrancy_guard.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())
