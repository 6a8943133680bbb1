#!/usr/bin/env python3
"""
square-sync - main entry point for python -m square_sync
"""

from .server import main

if __name__ == "__main__":
    main()
