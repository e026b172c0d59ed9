#!/usr/bin/env -S uv run --script
# /// script
# requires-python = ">=3.11"
# dependencies = [
#   "ot-case-log",
# ]
# ///
"""Main entry point for the case log application."""

from ot_case_log.cli import main

if __name__ == "__main__":
    main()
