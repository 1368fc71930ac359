"""
Batch pipeline for the changelog generator

Splits the fetched tickets into fixed-size batches and drives each batch
through the summarizer, one batch at a time. Within a batch, ticket
metadata is resolved on a small thread pool.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, List, Optional, Sequence, TypeVar

from models import IssueStub, RawTicketRecord, SummarizedTicket, Ticket

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 15


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most `size` items, in input order."""
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BatchPipeline:
    """Resolves, renders and summarizes tickets batch by batch."""

    def __init__(self, summarizer, resolver: Callable[[IssueStub], Ticket],
                 batch_size: int = DEFAULT_BATCH_SIZE, max_workers: int = 8):
        """
        Args:
            summarizer: Object exposing summarize(records) -> list of SummarizedTicket
            resolver: Turns an issue stub into a fully populated Ticket
            batch_size: Tickets per completion call
            max_workers: Threads used to resolve one batch
        """
        self.summarizer = summarizer
        self.resolver = resolver
        self.batch_size = batch_size
        self.max_workers = max_workers

    def build_records(self, batch: Sequence[IssueStub]) -> List[RawTicketRecord]:
        """Resolve a batch concurrently; output keeps the batch order."""
        if not batch:
            return []
        workers = min(self.max_workers, len(batch))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            tickets = list(executor.map(self.resolver, batch))
        return [RawTicketRecord.from_ticket(ticket) for ticket in tickets]

    def run(self, tickets: Sequence[IssueStub], batch_size: Optional[int] = None) -> List[SummarizedTicket]:
        """
        Summarize all tickets.

        Batches run sequentially and results are concatenated in batch order.
        A completion failure in any batch propagates and aborts the run.

        Args:
            tickets: Tickets in fetch order
            batch_size: Overrides the pipeline's batch size when given

        Returns:
            Summarized tickets
        """
        size = self.batch_size if batch_size is None else batch_size
        if size < 1:
            raise ValueError(f"batch size must be >= 1, got {size}")
        total = len(tickets)
        summarized: List[SummarizedTicket] = []

        logger.info("[Pipeline] Summarising %d tickets...", total)

        for index, batch in enumerate(chunked(tickets, size)):
            start = index * size
            records = self.build_records(batch)
            logger.info("[Pipeline] Summarising %d tickets - batch: [%d, %d] out of %d...",
                        len(records), start, start + size, total)

            batch_result = self.summarizer.summarize(records)
            logger.debug("[Pipeline] Summarised results: %s",
                         [ticket.to_dict() for ticket in batch_result])

            summarized.extend(batch_result)

        logger.info("[Pipeline] Summarised %d of %d tickets", len(summarized), total)
        return summarized
