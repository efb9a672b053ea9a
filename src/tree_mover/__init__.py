"""
Tree Mover - Idempotent Parallel Directory Migration Utility

A CLI tool for relocating the whole contents of a directory tree to a new
location, safe to re-run after an interruption.

This package provides functionality to:
- Enumerate every file and folder under a source root
- Skip items that already exist at the destination (never overwrite)
- Move items with a small worker pool (rename, or copy + delete across volumes)
- Remove the emptied source root after a fully successful run
- Generate CSV reports of per-item outcomes
"""

# Product identity constants
PRODUCT_NAME = "Tree Mover"
PRODUCT_VERSION = "1.0.0"
PRODUCT_DESCRIPTION = "Idempotent Parallel Directory Migration Utility"

__version__ = PRODUCT_VERSION
__author__ = "Tree Mover Team"
