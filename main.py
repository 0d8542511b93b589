#!/usr/bin/env python
"""Run ratingwatch: ``python main.py --mode serve|fetch``."""
import sys

from ratingwatch.cli import main

if __name__ == "__main__":
    sys.exit(main())
