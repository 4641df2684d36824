import asyncio
import itertools
import logging
from datetime import datetime, timedelta, timezone

import pytest

from slack_search_proxy.document_ledger import DocumentUsageLedger, split_name, usage_doc_id
from slack_search_proxy.errors import PersistenceError
from slack_search_proxy.models import Identity
from slack_search_proxy.storage import InMemoryDocumentStore

COLLECTION = "userStats"


def stepping_clock():
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    counter = itertools.count()
    return lambda: start + timedelta(minutes=next(counter))


@pytest.mark.parametrize(
    ("full_name", "expected"),
    [
        ("Ada Lovelace", ("Ada", "Lovelace")),
        ("Ada King Lovelace", ("Ada", "King Lovelace")),
        ("Ada", ("Ada", "")),
        ("  Ada Lovelace  ", ("Ada", "Lovelace")),
        ("", ("Unknown", "")),
    ],
)
def test_split_name(full_name, expected):
    assert split_name(full_name) == expected


@pytest.mark.asyncio
async def test_first_question_creates_entry(identity):
    store = InMemoryDocumentStore(clock=stepping_clock())
    ledger = DocumentUsageLedger(store, COLLECTION)

    assert await ledger.record_question(identity) is True

    entry = store.get(COLLECTION, "T123_U123")
    first = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert entry == {
        "userId": "U123",
        "userName": "Ada Lovelace",
        "firstName": "Ada",
        "lastName": "Lovelace",
        "teamId": "T123",
        "teamName": "Acme",
        "questionCount": 1,
        "firstQuestionAt": first,
        "lastQuestionAt": first,
        "firstSeen": first,
        "lastSeen": first,
    }


@pytest.mark.asyncio
async def test_later_questions_only_refresh_last_fields(identity):
    store = InMemoryDocumentStore(clock=stepping_clock())
    ledger = DocumentUsageLedger(store, COLLECTION)

    await ledger.record_question(identity)
    await ledger.record_question(identity)
    await ledger.record_question(identity)

    entry = store.get(COLLECTION, usage_doc_id(identity))
    assert entry["questionCount"] == 3
    assert entry["firstQuestionAt"] == entry["firstSeen"] == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert entry["lastQuestionAt"] == entry["lastSeen"] == datetime(2026, 1, 1, 0, 2, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_concurrent_questions_for_distinct_users_stay_independent(identity):
    store = InMemoryDocumentStore(clock=stepping_clock())
    ledger = DocumentUsageLedger(store, COLLECTION)
    other = Identity("T123", "Acme", "U456", "Grace Hopper")
    await ledger.record_question(identity)
    await ledger.record_question(other)
    firsts = {
        key: store.get(COLLECTION, key)["firstQuestionAt"] for key in ("T123_U123", "T123_U456")
    }

    results = await asyncio.gather(*[ledger.record_question(i) for i in (identity, other) * 5])

    assert all(results)
    for key in ("T123_U123", "T123_U456"):
        entry = store.get(COLLECTION, key)
        assert entry["questionCount"] == 6
        assert entry["firstQuestionAt"] == firsts[key]


@pytest.mark.asyncio
async def test_unconfigured_ledger_is_a_noop(identity):
    ledger = DocumentUsageLedger(None)

    assert await ledger.record_question(identity) is False
    assert await ledger.probe() == {}


@pytest.mark.asyncio
async def test_store_failures_are_logged_not_raised(identity, caplog):
    class BrokenStore(InMemoryDocumentStore):
        async def transact(self, collection, doc_id, mutate):
            raise PersistenceError("deadline exceeded")

    with caplog.at_level(logging.ERROR):
        assert await DocumentUsageLedger(BrokenStore()).record_question(identity) is False

    assert "deadline exceeded" in caplog.text


@pytest.mark.asyncio
async def test_probe_writes_and_removes_debug_document():
    store = InMemoryDocumentStore()

    result = await DocumentUsageLedger(store).probe()

    assert result == {"connectivityTest": "success", "testDocId": "connectivity-test"}
    assert store.get("_debug", "connectivity-test") is None


@pytest.mark.asyncio
async def test_probe_reports_failure():
    class BrokenStore(InMemoryDocumentStore):
        async def set(self, collection, doc_id, data):
            raise PersistenceError("permission denied")

    result = await DocumentUsageLedger(BrokenStore()).probe()

    assert result == {"connectivityTest": "failed", "error": "permission denied"}
