import json
import logging

import pytest

from conftest import FakeCompletionClient, make_stub, rate_limited, summary_item

from errors import CompletionError, CompletionErrorKind, NoResponseError
from models import RawTicketRecord, Ticket
from summarizer import SUMMARY_SYSTEM_PROMPT, Summarizer, parse_summaries


def records(*identifiers, project_name=None):
    return [
        RawTicketRecord.from_ticket(Ticket.from_stub(make_stub(i, project_name=project_name)))
        for i in identifiers
    ]


def test_one_completion_call_per_batch():
    batch = records("E-1", "E-2", project_name="API")
    client = FakeCompletionClient([json.dumps([summary_item("E-1"), summary_item("E-2")])])

    result = Summarizer(client, max_tokens=1234).summarize(batch)

    assert [t.identifier for t in result] == ["E-1", "E-2"]
    assert len(client.calls) == 1
    call = client.calls[0]
    assert call["system"] == SUMMARY_SYSTEM_PROMPT
    assert call["max_tokens"] == 1234
    assert call["user"] == batch[0].text + "\n---\n" + batch[1].text


def test_empty_batch_makes_no_call():
    client = FakeCompletionClient()
    assert Summarizer(client).summarize([]) == []
    assert client.calls == []


def test_rate_limit_backoff_then_success(sleeps, fake_sleep):
    client = FakeCompletionClient([rate_limited(), rate_limited(), json.dumps([summary_item("E-1")])])

    result = Summarizer(client, sleep=fake_sleep).summarize(records("E-1"))

    assert [t.identifier for t in result] == ["E-1"]
    assert sleeps == [1, 2]
    assert len(client.calls) == 3


def test_quota_errors_are_retried(sleeps, fake_sleep):
    quota = CompletionError(CompletionErrorKind.QUOTA_EXCEEDED, "credit balance is too low")
    client = FakeCompletionClient([quota, json.dumps(summary_item("E-1"))])

    result = Summarizer(client, sleep=fake_sleep).summarize(records("E-1"))

    assert len(result) == 1
    assert sleeps == [1]


def test_retries_exhausted_is_terminal(sleeps, fake_sleep):
    client = FakeCompletionClient([rate_limited() for _ in range(5)])

    with pytest.raises(NoResponseError) as excinfo:
        Summarizer(client, sleep=fake_sleep).summarize(records("E-1"))

    assert sleeps == [1, 2, 4, 8, 16]
    assert len(client.calls) == 5
    assert excinfo.value.attempts == 5


@pytest.mark.parametrize("kind", [CompletionErrorKind.OTHER_API_ERROR, CompletionErrorKind.NETWORK_ERROR])
def test_non_recoverable_errors_propagate_immediately(kind, sleeps, fake_sleep):
    client = FakeCompletionClient([CompletionError(kind, "nope")])

    with pytest.raises(CompletionError) as excinfo:
        Summarizer(client, sleep=fake_sleep).summarize(records("E-1"))

    assert excinfo.value.kind is kind
    assert not isinstance(excinfo.value, NoResponseError)
    assert sleeps == []
    assert len(client.calls) == 1


def test_empty_completion_is_no_response(sleeps, fake_sleep):
    client = FakeCompletionClient([""])
    with pytest.raises(NoResponseError):
        Summarizer(client, sleep=fake_sleep).summarize(records("E-1"))
    assert sleeps == []


def test_unparsable_response_degrades_to_empty(caplog):
    client = FakeCompletionClient(["Sure! Here are your tickets: [oops"])
    with caplog.at_level(logging.ERROR):
        assert Summarizer(client).summarize(records("E-1")) == []
    assert "Error parsing Claude response" in caplog.text


def test_single_object_is_wrapped():
    batch = records("E-1")
    as_object = parse_summaries(json.dumps(summary_item("E-1")), batch)
    as_array = parse_summaries(json.dumps([summary_item("E-1")]), batch)
    assert as_object == as_array
    assert len(as_object) == 1


def test_code_fence_is_stripped():
    text = "```json\n" + json.dumps([summary_item("E-1")]) + "\n```"
    assert [t.identifier for t in parse_summaries(text, records("E-1"))] == ["E-1"]


def test_unknown_identifiers_and_non_objects_are_dropped(caplog):
    text = json.dumps([summary_item("E-1"), summary_item("X-99"), "stray", 3])
    with caplog.at_level(logging.WARNING):
        result = parse_summaries(text, records("E-1"))
    assert [t.identifier for t in result] == ["E-1"]
    assert "X-99" in caplog.text


def test_missing_project_falls_back_to_record_label():
    item = summary_item("E-1")
    del item["project"]
    result = parse_summaries(json.dumps([item]), records("E-1"))
    assert result[0].project == "Enhancement"
    assert result[0].category == "DB"


def test_repeated_identifier_keeps_first_entry(caplog):
    first = summary_item("E-1", category="Auth")
    repeat = summary_item("E-1", category="CI")
    with caplog.at_level(logging.WARNING):
        result = parse_summaries(json.dumps([first, repeat, summary_item("E-2")]), records("E-1", "E-2"))
    assert [t.identifier for t in result] == ["E-1", "E-2"]
    assert result[0].category == "Auth"
    assert "duplicate summary for E-1" in caplog.text
