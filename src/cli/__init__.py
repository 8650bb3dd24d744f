# =============================================================================
# src/cli/__init__.py -- CLI Module Overview
# =============================================================================
#
# Command-line entry point for the forum archive.  Everything runs through
# one argparse tool, ``python -m src.cli <command>``:
#
#   1. LAYOUT     (init, validate)
#      Create the archive root or check it before resuming a run.
#
#   2. INDEXING   (index, run)
#      Two-pass discovery of a section's topics; ``run`` drains the section
#      list CSV and records completed sections so it can resume.
#
#   3. ARCHIVING  (archive)
#      Walks every indexed topic of a section and stores its raw pages and
#      a structured JSON record.
#
#   4. MAINTENANCE (backup, list-backups, quota, status)
#
# Architecture Notes:
#   - argparse only; one async handler per network-bound subcommand.
#   - Service imports are deferred inside handlers so maintenance commands
#     do not pay for httpx/bs4 imports.
#   - Each handler builds its own service graph from Settings; there is no
#     central container because every invocation is a one-shot process.
# =============================================================================

"""CLI tools for the forum archive.

- ``python -m src.cli`` -- index, archive and maintain an archive root.
"""
