"""
Release Note Orchestrator

This module:
1. Lists all active Linear projects
2. Fetches each project's tickets from every workflow column
3. Fetches tickets without a project from the same columns
4. Summarizes everything in batches and formats the release note
"""

import logging
from typing import List

from changelog_config import ChangelogConfig
from claude_client import ClaudeClient
from formatter import ReleaseNoteFormatter
from linear_handler import LinearHandler
from models import COLUMN_FETCH_ORDER, IssueStub
from pipeline import BatchPipeline
from summarizer import Summarizer

logger = logging.getLogger(__name__)


class ReleaseNoteOrchestrator:
    """Runs one fetch -> summarize -> format cycle."""

    def __init__(self, config: ChangelogConfig, linear: LinearHandler,
                 pipeline: BatchPipeline, formatter: ReleaseNoteFormatter):
        self.config = config
        self.linear = linear
        self.pipeline = pipeline
        self.formatter = formatter

    @classmethod
    def from_config(cls, config: ChangelogConfig) -> "ReleaseNoteOrchestrator":
        """Wire the Linear handler, Claude client and pipeline from the configuration."""
        linear = LinearHandler(
            api_key=config.linear_api_key,
            team=config.linear_team,
            api_url=config.linear_api_url,
            page_size=config.page_size,
        )
        claude = ClaudeClient(
            api_key=config.anthropic_api_key,
            model=config.claude_model,
            temperature=config.claude_temperature,
        )
        summarizer = Summarizer(
            claude,
            max_tokens=config.claude_max_tokens,
            max_retries=config.max_retries,
        )
        pipeline = BatchPipeline(
            summarizer,
            resolver=linear.resolve_ticket,
            batch_size=config.batch_size,
            max_workers=config.resolve_workers,
        )
        formatter = ReleaseNoteFormatter(config.legacy_enhancements_section)
        return cls(config, linear, pipeline, formatter)

    def collect_tickets(self) -> List[IssueStub]:
        """
        Fetch tickets for every active project, then the unprojected ones.

        Fetches run one after another; a failed fetch contributes no tickets.
        """
        all_tickets: List[IssueStub] = []
        since_days = self.config.lookback_days

        for project in self.linear.list_active_projects():
            for column in COLUMN_FETCH_ORDER:
                all_tickets.extend(self.linear.fetch_tickets(column, since_days, project=project))

        for column in COLUMN_FETCH_ORDER:
            all_tickets.extend(self.linear.fetch_tickets(column, since_days))

        logger.info("[Orchestrator] Collected %d tickets", len(all_tickets))
        return all_tickets

    def generate_release_note(self) -> str:
        """
        Build the release note text.

        Raises:
            CompletionError: if a batch cannot be summarized
        """
        tickets = self.collect_tickets()
        summarized = self.pipeline.run(tickets, self.config.batch_size)
        return self.formatter.format(summarized)
