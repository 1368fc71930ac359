"""
Release Note Formatter for the changelog generator

This module handles formatting of the summarized tickets:
- Grouping tickets by project, in first-seen order
- Rendering one Markdown-flavoured block per project
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Sequence

from models import ENHANCEMENT_PROJECT_LABEL, SummarizedTicket

logger = logging.getLogger(__name__)


ENHANCEMENTS_HEADER = "*Enhancements*:"


def group_by_project(tickets: Sequence[SummarizedTicket]) -> Dict[str, List[SummarizedTicket]]:
    """Group tickets by project; projects and tickets keep their first-seen order."""
    grouped: Dict[str, List[SummarizedTicket]] = OrderedDict()
    for ticket in tickets:
        grouped.setdefault(ticket.project, []).append(ticket)
    return grouped


def format_ticket_line(ticket: SummarizedTicket) -> str:
    return f"[{ticket.category}] {ticket.summary} - [{ticket.identifier}]({ticket.url})\n"


class ReleaseNoteFormatter:
    """Formatter for the grouped release note."""

    def __init__(self, legacy_enhancements_section: bool = False):
        """
        Args:
            legacy_enhancements_section: Also repeat the "Enhancement" group
                under an "*Enhancements*:" header at the end, as older
                release notes did
        """
        self.legacy_enhancements_section = legacy_enhancements_section

    def format(self, tickets: Sequence[SummarizedTicket]) -> str:
        """
        Render the release note.

        Each project block is a "*<project>*:" header, one line per ticket
        and a blank line.

        Args:
            tickets: Summarized tickets in pipeline order

        Returns:
            Release note text
        """
        grouped = group_by_project(tickets)
        result = ""

        for project_name, project_tickets in grouped.items():
            result += f"*{project_name}*:\n"
            for ticket in project_tickets:
                result += format_ticket_line(ticket)
            logger.info("[Formatter] Found %d tickets for project %s", len(project_tickets), project_name)
            result += "\n"

        if self.legacy_enhancements_section and ENHANCEMENT_PROJECT_LABEL in grouped:
            result += ENHANCEMENTS_HEADER + "\n"
            for ticket in grouped[ENHANCEMENT_PROJECT_LABEL]:
                result += format_ticket_line(ticket)
            result += "\n"

        return result
