"""
Data model for the Linear changelog generator

Records flowing through the pipeline:
- ProjectRef / IssueStub as returned by the Linear list queries
- Ticket once assignee and labels have been resolved
- RawTicketRecord, the text handed to Claude for one ticket
- SummarizedTicket, one entry of Claude's JSON answer
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


BUG_LABEL = "bug"
BUG_PROJECT_LABEL = "Bug"
ENHANCEMENT_PROJECT_LABEL = "Enhancement"


class WorkflowColumn(Enum):
    """Workflow states we collect tickets from, named as in Linear."""

    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    IN_REVIEW = "In Review"
    STAGING = "Staging"
    DONE = "Done"


# Order in which columns are fetched for every project
COLUMN_FETCH_ORDER = (
    WorkflowColumn.DONE,
    WorkflowColumn.STAGING,
    WorkflowColumn.IN_REVIEW,
    WorkflowColumn.IN_PROGRESS,
    WorkflowColumn.TODO,
)


@dataclass(frozen=True)
class ProjectRef:
    id: str
    name: str
    active: bool = True


@dataclass(frozen=True)
class IssueStub:
    """Issue as listed by a column query, before metadata resolution."""

    id: str
    identifier: str
    title: str
    description: str
    priority_label: str
    estimate: Optional[int]
    url: str
    updated_at: Optional[datetime]
    project_name: Optional[str] = None


@dataclass(frozen=True)
class Ticket:
    """Fully resolved, read-only view of a Linear issue."""

    identifier: str
    title: str
    description: str
    priority_label: str
    estimate: Optional[int]
    url: str
    updated_at: Optional[datetime]
    assignee_name: Optional[str] = None
    labels: Tuple[str, ...] = field(default_factory=tuple)
    project_name: Optional[str] = None

    @classmethod
    def from_stub(cls, stub: IssueStub, assignee_name: Optional[str] = None,
                  labels: Tuple[str, ...] = ()) -> "Ticket":
        return cls(
            identifier=stub.identifier,
            title=stub.title,
            description=stub.description,
            priority_label=stub.priority_label,
            estimate=stub.estimate,
            url=stub.url,
            updated_at=stub.updated_at,
            assignee_name=assignee_name,
            labels=tuple(labels),
            project_name=stub.project_name,
        )

    @property
    def project_label(self) -> str:
        """
        Group name used in the release note.

        The project name when the ticket belongs to one, otherwise "Bug" for
        tickets labelled bug and "Enhancement" for everything else.
        """
        if self.project_name:
            return self.project_name
        if BUG_LABEL in self.labels:
            return BUG_PROJECT_LABEL
        return ENHANCEMENT_PROJECT_LABEL


@dataclass(frozen=True)
class RawTicketRecord:
    identifier: str
    project_label: str
    text: str

    @classmethod
    def from_ticket(cls, ticket: Ticket) -> "RawTicketRecord":
        estimate = "" if ticket.estimate is None else str(ticket.estimate)
        lines = [
            f"- Ticket identifier: {ticket.identifier}",
            f"- Ticket title: {ticket.title}",
            f"- Ticket priority: {ticket.priority_label}",
            f"- Ticket estimate: {estimate}",
            f"- Person responsible for the ticket: {ticket.assignee_name or ''}",
            f"- Labels of the ticket: {', '.join(ticket.labels)}",
            f"- Url of the ticket: {ticket.url}",
            f"- Ticket description: {ticket.description}",
            f"- Project: {ticket.project_label}",
        ]
        return cls(
            identifier=ticket.identifier,
            project_label=ticket.project_label,
            text="\n".join(lines),
        )


@dataclass(frozen=True)
class SummarizedTicket:
    identifier: str
    url: str
    summary: str
    category: str
    project: str

    def to_dict(self) -> dict:
        return {
            "identifier": self.identifier,
            "url": self.url,
            "summary": self.summary,
            "category": self.category,
            "project": self.project,
        }
