#!/usr/bin/env python3
"""
Linear Changelog - Main Script

Fetches the team's recent Linear tickets, summarizes them with Claude and
prints a release note grouped by project.

Usage:
    python main.py

Environment:
    LINEAR_API_KEY, ANTHROPIC_API_KEY (required); see changelog_config.py
    for the optional settings.
"""

import logging
import sys

from changelog_config import ChangelogConfig, setup_logging
from orchestrator import ReleaseNoteOrchestrator

logger = logging.getLogger(__name__)


def main() -> int:
    """Generate the release note and print it to stdout."""
    try:
        config = ChangelogConfig.from_env()
    except ValueError as e:
        print(f"[Config] ERROR: {e}", file=sys.stderr)
        return 1

    setup_logging(config)
    config.log_config()

    orchestrator = ReleaseNoteOrchestrator.from_config(config)
    release_note = orchestrator.generate_release_note()

    logger.info("[Main] Final release note generated")
    print(release_note)
    return 0


if __name__ == "__main__":
    sys.exit(main())
