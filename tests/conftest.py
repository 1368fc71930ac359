"""Shared fakes for the changelog tests."""

import json

import pytest

from errors import CompletionError, CompletionErrorKind
from models import IssueStub, Ticket


def make_stub(identifier: str, project_name: str = None, **overrides) -> IssueStub:
    fields = dict(
        id=f"id-{identifier}",
        identifier=identifier,
        title=f"Title {identifier}",
        description=f"Description of {identifier}",
        priority_label="High",
        estimate=3,
        url=f"https://linear.app/acme/issue/{identifier}",
        updated_at=None,
        project_name=project_name,
    )
    fields.update(overrides)
    return IssueStub(**fields)


def summary_item(identifier: str, project: str = "API", category: str = "DB") -> dict:
    return {
        "identifier": identifier,
        "url": f"https://linear.app/acme/issue/{identifier}",
        "summary": f"Ship {identifier}",
        "category": category,
        "project": project,
    }


class FakeCompletionClient:
    """Replays queued responses; an exception in the queue is raised instead."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def complete(self, system_prompt: str, user_content: str, max_tokens: int) -> str:
        self.calls.append({"system": system_prompt, "user": user_content, "max_tokens": max_tokens})
        if not self.responses:
            raise AssertionError("unexpected completion call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class EchoCompletionClient:
    """Answers every batch with one summary per identifier found in the payload."""

    def __init__(self):
        self.calls = []

    def complete(self, system_prompt: str, user_content: str, max_tokens: int) -> str:
        self.calls.append(user_content)
        items = []
        for block in user_content.split("\n---\n"):
            fields = {}
            for line in block.splitlines():
                key, _, value = line.partition(": ")
                fields[key.strip("- ").strip()] = value
            items.append(summary_item(fields["Ticket identifier"], project=fields["Project"]))
        return json.dumps(items)


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, text: str = ""):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.text = text or json.dumps(self._payload)

    def json(self):
        return self._payload


class FakeSession:
    """requests.Session stand-in returning queued responses for each POST."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.posts = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.posts.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if not self.responses:
            raise AssertionError("unexpected request")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def rate_limited(message: str = "rate limited") -> CompletionError:
    return CompletionError(CompletionErrorKind.RATE_LIMITED, message, 429)


def resolve_plain(stub: IssueStub) -> Ticket:
    return Ticket.from_stub(stub)


@pytest.fixture
def sleeps():
    """Records backoff waits instead of sleeping."""
    waits = []
    return waits


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append
