"""
fdc-sim Command-Line Interface
==============================

This package provides the command-line tool for the FDC+ serial drive
link:

- **fdclink**: issue STAT, READ and WRIT to a disk server, or poll STAT

The tool is a Click-based CLI application with comprehensive help and
error reporting.
"""

__all__ = ["fdclink"]
