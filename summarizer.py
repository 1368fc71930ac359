"""
Ticket Summarizer for the changelog generator

Turns a batch of raw ticket records into one-line summaries with a single
Claude call:
- Builds the release-log prompt and the batch payload
- Retries rate-limit and quota failures with exponential backoff
- Parses the JSON answer, keeping only entries that match the batch
"""

import json
import logging
import re
import time
from typing import Callable, Dict, List, Sequence

from errors import CompletionError, NoResponseError
from models import RawTicketRecord, SummarizedTicket

logger = logging.getLogger(__name__)


RECORD_SEPARATOR = "\n---\n"

SUMMARY_SYSTEM_PROMPT = """You are a product manager with a great technical background for a tech startup \
company making a release log of the tickets shipped by the company.

The tickets are structured the following way:
- An identifier, to recognise the ticket
- A title, explaining the main goal of the ticket (it helps to understand the ticket general idea)
- A description, explaining all the details and how to achieve the goal (it tells what the ticket does)
- Some labels, to explain what the ticket is about (e.g. bug for a bug fix, product for a product feature)
- A priority, which tells how urgent the ticket was
- An estimate, which tells how much work the ticket represented (between 1 and 7, 1 being a small ticket \
and 7 a huge one) - a ticket with high priority and high estimate is usually a key feature for the company
- The person responsible for it (a name)
- A url, to link to the ticket
- The project the ticket is grouped under

Summarise every ticket as a JSON object with exactly these fields:

{
  "identifier": "<ticket identifier>",
  "url": "<ticket url>",
  "summary": "<ticket summary>",
  "category": "<ticket category>",
  "project": "<ticket project>"
}

where:
- identifier is just the identifier
- url is just the url
- summary is a quick summary of what the ticket solved or created. It must be a proper natural English \
sentence in the imperative mood (like a git commit message) and must not start with bracketed tags \
(not tolerated: "[Shortlister] Show not onboarded collectives", write instead "Show not onboarded \
collectives on the shortlister")
- category is ideally max 2 words (3 tolerated if hard to describe) naming the area of the ticket \
(for example "CI", "Datadog" or "Shortlister")
- project is the project given for the ticket (can be any project name)

Here is an example of a ticket JSON object:

{
  "identifier": "E-3306",
  "url": "https://linear.app/collective-work/issue/E-3306/update-prisma-to-v5",
  "summary": "Update the database to its new major version",
  "category": "Database",
  "project": "API"
}

As there are multiple tickets, the result must JUST be a JSON array of objects as above, directly parsable. \
Always return a JSON array, even if it contains only one element. This is really important.
"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```$", re.DOTALL | re.IGNORECASE)


def _strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json fence if Claude added one."""
    text = text.strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text


def parse_summaries(text: str, batch: Sequence[RawTicketRecord]) -> List[SummarizedTicket]:
    """
    Parse Claude's answer for a batch.

    A single object is treated as a one-element array. Entries that are not
    objects, whose identifier is not part of the batch, or that repeat an
    identifier already seen are dropped.

    Args:
        text: Raw completion text
        batch: Records that were sent in the request

    Returns:
        Summarized tickets in answer order, or [] if the text is not JSON
    """
    try:
        parsed = json.loads(_strip_code_fence(text))
    except json.JSONDecodeError as e:
        logger.error("[Summarizer] Error parsing Claude response: %s", e)
        return []

    if not isinstance(parsed, list):
        parsed = [parsed]

    labels_by_id: Dict[str, str] = {record.identifier: record.project_label for record in batch}
    summaries = []
    seen = set()
    for item in parsed:
        if not isinstance(item, dict):
            logger.warning("[Summarizer] Skipping non-object entry: %r", item)
            continue
        identifier = str(item.get("identifier") or "").strip()
        if identifier not in labels_by_id:
            logger.warning("[Summarizer] Dropping summary for unknown identifier %r", identifier)
            continue
        if identifier in seen:
            logger.warning("[Summarizer] Dropping duplicate summary for %s", identifier)
            continue
        seen.add(identifier)
        summaries.append(SummarizedTicket(
            identifier=identifier,
            url=str(item.get("url") or ""),
            summary=str(item.get("summary") or ""),
            category=str(item.get("category") or ""),
            project=str(item.get("project") or labels_by_id[identifier]),
        ))
    return summaries


class Summarizer:
    """Summarizes ticket batches through a completion client."""

    def __init__(self, client, max_tokens: int = 2000, max_retries: int = 5,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Args:
            client: Object exposing complete(system_prompt, user_content, max_tokens) -> str
            max_tokens: Token limit for each completion
            max_retries: Attempts before giving up on rate-limit/quota errors
            sleep: Function used for backoff waits
        """
        self.client = client
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self._sleep = sleep

    def _complete_with_retry(self, user_content: str) -> str:
        returned_content = ""
        attempt = 0
        calls = 0

        while attempt < self.max_retries:
            calls += 1
            try:
                returned_content = self.client.complete(
                    SUMMARY_SYSTEM_PROMPT, user_content, self.max_tokens
                )
                break
            except CompletionError as e:
                logger.error("[Claude] Error querying Claude API (%s): %s", e.kind.value, e)
                if not e.recoverable:
                    raise
                wait_time = 2 ** attempt
                logger.info("[Claude] Retrying in %d seconds...", wait_time)
                self._sleep(wait_time)
                attempt += 1

        if not returned_content:
            raise NoResponseError(attempts=calls)
        return returned_content

    def summarize(self, batch: Sequence[RawTicketRecord]) -> List[SummarizedTicket]:
        """
        Summarize one batch with a single completion call.

        Args:
            batch: Raw ticket records

        Returns:
            Summarized tickets ([] when the answer cannot be parsed)

        Raises:
            CompletionError: for non-recoverable API failures
            NoResponseError: when retries are exhausted or the answer is empty
        """
        if not batch:
            return []

        user_content = RECORD_SEPARATOR.join(record.text for record in batch)
        text = self._complete_with_retry(user_content)
        return parse_summaries(text, batch)
