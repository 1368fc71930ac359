"""
Linear API Handler for the changelog generator

This module handles all Linear-related operations:
- Authenticating against the GraphQL API with a personal API key
- Listing active projects
- Fetching a team's tickets per project and workflow column
- Resolving assignee and labels for a single ticket
"""

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests

from errors import TrackerError
from models import IssueStub, ProjectRef, Ticket, WorkflowColumn

logger = logging.getLogger(__name__)


PROJECTS_QUERY = """
query ActiveProjects($first: Int!) {
  projects(filter: {state: {eq: "active"}}, first: $first) {
    nodes { id name state }
  }
}
"""

ISSUES_QUERY = """
query ColumnIssues($filter: IssueFilter, $first: Int!) {
  issues(filter: $filter, first: $first) {
    nodes {
      id
      identifier
      title
      description
      priorityLabel
      estimate
      url
      updatedAt
    }
    pageInfo { hasNextPage }
  }
}
"""

ISSUE_DETAILS_QUERY = """
query IssueDetails($id: String!) {
  issue(id: $id) {
    assignee { name }
    labels { nodes { name } }
  }
}
"""


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_estimate(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class LinearHandler:
    """Handler for Linear GraphQL API operations."""

    def __init__(self, api_key: str, team: str,
                 api_url: str = "https://api.linear.app/graphql",
                 page_size: int = 250, session: Optional[requests.Session] = None,
                 retries: int = 3, sleep=time.sleep, clock=None):
        """
        Initialize Linear handler with authentication credentials.

        Args:
            api_key: Linear personal API key
            team: Team name every query is restricted to
            api_url: GraphQL endpoint
            page_size: Maximum number of issues returned per column query
            session: requests session shared by all threads (injected by tests);
                by default every thread opens its own
            retries: Number of attempts for transient transport failures
            sleep: Function used for backoff waits
            clock: Callable returning the current UTC datetime
        """
        if not api_key:
            raise ValueError("LINEAR_API_KEY must be provided")

        self.api_url = api_url
        self.team = team
        self.page_size = page_size
        self.retries = retries
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._session = session
        self._local = threading.local()
        self.headers = {
            "Authorization": api_key,
            "Content-Type": "application/json",
        }

        logger.info("[Linear] Initialized handler for team %s", self.team)

    @property
    def session(self) -> requests.Session:
        """Session for the calling thread; requests sessions are not thread-safe."""
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def _make_request(self, query: str, variables: Optional[dict] = None) -> Dict:
        """
        Run a GraphQL query with retry logic.

        Timeouts, connection errors, 429 and 5xx responses are retried with
        exponential backoff. Other failures raise immediately.

        Args:
            query: GraphQL document
            variables: Query variables

        Returns:
            The "data" member of the response

        Raises:
            TrackerError: if the request could not be completed
        """
        payload = {"query": query, "variables": variables or {}}
        last_error = "no attempt made"

        for attempt in range(self.retries):
            try:
                response = self.session.post(
                    self.api_url,
                    headers=self.headers,
                    json=payload,
                    timeout=30,
                )
            except requests.exceptions.Timeout:
                last_error = "request timeout"
                logger.warning("[Linear] Request timeout (attempt %d/%d)", attempt + 1, self.retries)
            except requests.exceptions.RequestException as e:
                last_error = str(e)
                logger.warning("[Linear] Request error (attempt %d/%d): %s", attempt + 1, self.retries, e)
            else:
                if response.status_code == 200:
                    try:
                        body = response.json()
                    except ValueError as e:
                        raise TrackerError(f"Invalid JSON response: {e}") from e
                    if body.get("errors"):
                        messages = "; ".join(err.get("message", "unknown error") for err in body["errors"])
                        raise TrackerError(f"GraphQL errors: {messages}")
                    return body.get("data") or {}
                if response.status_code == 401:
                    raise TrackerError("Authentication failed. Check LINEAR_API_KEY.")
                if response.status_code != 429 and response.status_code < 500:
                    raise TrackerError(f"Request failed with status {response.status_code}: {response.text}")
                last_error = f"status {response.status_code}"
                logger.warning("[Linear] Request failed with status %d (attempt %d/%d)",
                               response.status_code, attempt + 1, self.retries)

            if attempt < self.retries - 1:
                wait_time = 2 ** attempt  # Exponential backoff
                logger.info("[Linear] Retrying in %d seconds...", wait_time)
                self._sleep(wait_time)

        raise TrackerError(f"Request failed after {self.retries} attempts: {last_error}")

    def list_active_projects(self) -> List[ProjectRef]:
        """
        List all active projects.

        Returns:
            Active projects, or an empty list if the request fails
        """
        try:
            data = self._make_request(PROJECTS_QUERY, {"first": self.page_size})
        except TrackerError as e:
            logger.error("[Linear] Error fetching projects: %s", e)
            return []

        projects = []
        for node in (data.get("projects") or {}).get("nodes") or []:
            if not isinstance(node, dict) or not node.get("id") or not node.get("name"):
                logger.warning("[Linear] Skipping malformed project node: %r", node)
                continue
            projects.append(ProjectRef(id=node["id"], name=node["name"], active=True))
        logger.info("[Linear] Found %d active projects...", len(projects))
        return projects

    def _issue_filter(self, column: WorkflowColumn, since_days: int,
                      project: Optional[ProjectRef]) -> dict:
        updated_after = self._clock() - timedelta(days=since_days)
        issue_filter = {
            "team": {"name": {"eq": self.team}},
            "state": {"name": {"eq": column.value}},
            "updatedAt": {"gte": updated_after.isoformat()},
        }
        if project is not None:
            issue_filter["project"] = {"id": {"eq": project.id}}
        else:
            issue_filter["project"] = {"null": True}
        return issue_filter

    def fetch_tickets(self, column: WorkflowColumn, since_days: int,
                      project: Optional[ProjectRef] = None) -> List[IssueStub]:
        """
        Get the team's tickets in a workflow column, updated in the last days.

        Only the first page (page_size issues) is read; larger columns are
        truncated and a warning is logged.

        Args:
            column: Workflow column to read
            since_days: Lookback window in days
            project: Restrict to this project; None means tickets without a project

        Returns:
            List of issue stubs, or an empty list if the request fails
        """
        scope = f"project {project.name}" if project else "no project"
        variables = {
            "filter": self._issue_filter(column, since_days, project),
            "first": self.page_size,
        }

        try:
            data = self._make_request(ISSUES_QUERY, variables)
        except TrackerError as e:
            logger.error("[Linear] Error fetching issues for %s from column %s: %s",
                         scope, column.value, e)
            return []

        issues = data.get("issues") or {}
        nodes = issues.get("nodes") or []
        if (issues.get("pageInfo") or {}).get("hasNextPage"):
            logger.warning("[Linear] More than %d tickets for %s under column %s, result truncated",
                           self.page_size, scope, column.value)

        if not nodes:
            logger.info("[Linear] No issues found for %s under column %s", scope, column.value)
            return []

        logger.info("[Linear] Found %d tickets for %s under column %s...",
                    len(nodes), scope, column.value)

        project_name = project.name if project else None
        stubs = []
        for node in nodes:
            if not isinstance(node, dict) or not node.get("id") or not node.get("identifier"):
                logger.warning("[Linear] Skipping malformed issue node for %s under column %s: %r",
                               scope, column.value, node)
                continue
            stubs.append(IssueStub(
                id=node["id"],
                identifier=node["identifier"],
                title=node.get("title") or "",
                description=node.get("description") or "",
                priority_label=node.get("priorityLabel") or "",
                estimate=_parse_estimate(node.get("estimate")),
                url=node.get("url") or "",
                updated_at=_parse_timestamp(node.get("updatedAt")),
                project_name=project_name,
            ))
        return stubs

    def resolve_ticket(self, stub: IssueStub) -> Ticket:
        """
        Resolve assignee and labels for a ticket.

        A failed lookup is logged and the ticket is returned without
        assignee or labels.

        Args:
            stub: Issue as returned by fetch_tickets

        Returns:
            Fully populated Ticket
        """
        try:
            data = self._make_request(ISSUE_DETAILS_QUERY, {"id": stub.id})
        except TrackerError as e:
            logger.warning("[Linear] Could not resolve details for %s: %s", stub.identifier, e)
            return Ticket.from_stub(stub)

        issue = data.get("issue") or {}
        assignee = issue.get("assignee") or {}
        labels = tuple(
            label["name"] for label in (issue.get("labels") or {}).get("nodes") or []
            if isinstance(label, dict) and label.get("name")
        )
        return Ticket.from_stub(stub, assignee_name=assignee.get("name"), labels=labels)
