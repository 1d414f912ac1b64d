"""Tests for the append-only event log — immutability, persistence, integrity."""

import json
import pytest
from datetime import datetime, timezone
from pathlib import Path

from flightsurety.persistence.event_log import EventKind, EventLog, EventRecord


def _now() -> datetime:
    return datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


def _event(event_id: str, flight: str = "XY1") -> EventRecord:
    return EventRecord.create(
        event_id=event_id,
        event_kind=EventKind.INSUREES_CREDITED,
        actor_id="oracle",
        payload={"flight": flight, "credits": []},
        timestamp_utc=_now(),
    )


class TestEventRecord:
    def test_hash_is_deterministic(self) -> None:
        assert _event("EVT-1").event_hash == _event("EVT-1").event_hash

    def test_hash_depends_on_payload(self) -> None:
        assert _event("EVT-1", "XY1").event_hash != _event("EVT-1", "XY2").event_hash

    def test_timestamp_format(self) -> None:
        assert _event("EVT-1").timestamp_utc == "2026-10-18T12:00:00Z"


class TestEventLog:
    def test_append_and_filter(self) -> None:
        log = EventLog()
        log.append(_event("EVT-1"))
        log.append(EventRecord.create(
            "EVT-2", EventKind.CREDIT_WITHDRAWN, "alice", {"insuree": "alice"},
        ))
        assert log.count == 2
        assert len(log.events(EventKind.CREDIT_WITHDRAWN)) == 1
        assert log.last_event.event_id == "EVT-2"

    def test_duplicate_id_rejected(self) -> None:
        log = EventLog()
        log.append(_event("EVT-1"))
        with pytest.raises(ValueError, match="Duplicate"):
            log.append(_event("EVT-1"))

    def test_events_returns_copy(self) -> None:
        log = EventLog()
        log.append(_event("EVT-1"))
        log.events().clear()
        assert log.count == 1


class TestFilePersistence:
    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        log = EventLog(storage_path=path)
        log.append(_event("EVT-1"))
        log.append(_event("EVT-2", "XY2"))

        reloaded = EventLog(storage_path=path)
        assert [e.event_hash for e in reloaded.events()] == [
            e.event_hash for e in log.events()
        ]

    def test_tampered_record_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_event("EVT-1"))

        record = json.loads(path.read_text(encoding="utf-8"))
        record["payload"]["flight"] = "XY9"
        path.write_text(json.dumps(record) + "\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Integrity check failed"):
            EventLog(storage_path=path)

    def test_duplicate_on_recovery_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_event("EVT-1"))
        line = path.read_text(encoding="utf-8")
        path.write_text(line + line, encoding="utf-8")
        with pytest.raises(ValueError, match="Duplicate event ID on recovery"):
            EventLog(storage_path=path)
