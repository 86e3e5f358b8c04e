"""
Private pool entry point.

Usage:
    python -m private_pool
"""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
