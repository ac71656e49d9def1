#!/usr/bin/env python3
"""
GBA Playground
A small web launcher for locally stored GBA ROMs.

Usage:
    python main.py                      (serve on $HOST:$PORT, default 127.0.0.1:3000)
    python main.py --port 8080
    python main.py --roms ./roms --db ./data.sqlite

For help: python main.py --help
"""

import sys
import os

# Add package to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from romlauncher.cli import run_cli


def main():
    """Main entry point"""
    sys.exit(run_cli())


if __name__ == '__main__':
    main()
