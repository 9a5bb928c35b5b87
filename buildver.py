#!/usr/bin/env python3
"""Top-level wrapper script for buildver.

Allows running directly: python buildver.py [args]
"""

from buildver.cli import main

if __name__ == "__main__":
    main()
