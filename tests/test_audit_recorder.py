"""
Tests for the audit recorder.

These tests prove:
- Recording never raises, whatever the input or storage state
- Entries are stamped by the recorder clock and stored sanitized
- History queries order by timestamp, not by insertion
"""
from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError

from chemflow.models.audit import AuditLogRecord
from chemflow.models.domain import AuditEntryInput
from chemflow.models.enums import AuditAction, EntityType, UserRole
from chemflow.services.audit import AuditRecorder
from chemflow.services.repository import AuditLogRepository
from chemflow.services.sanitize import REDACTED


def entry(**overrides):
    fields = dict(
        action=AuditAction.UPDATE,
        entity_type=EntityType.TICKET,
        entity_id="t-1",
        user_id="u1",
        user_name="Rita Requester",
        user_role="REQUESTER",
        details="Ticket updated",
    )
    fields.update(overrides)
    return AuditEntryInput(**fields)


def status_change(ticket_id, old, new):
    return entry(
        action=AuditAction.STATUS_CHANGE,
        entity_id=ticket_id,
        previous_value={"status": old},
        new_value={"status": new},
    )


class FailingRepository(AuditLogRepository):
    rollbacks = 0

    def rollback(self):
        self.rollbacks += 1
        super().rollback()

    def add(self, fields):
        raise OperationalError("INSERT INTO audit_logs", {}, Exception("disk I/O error"))

    def find(self, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    def count(self, **filters):
        raise OperationalError("SELECT", {}, Exception("database is locked"))


class SequenceClock:
    def __init__(self, *times):
        self.times = list(times)

    def __call__(self):
        return self.times.pop(0)


class TestRecord:
    def test_records_entry(self, recorder, db_session):
        result = recorder.record(entry())
        assert result is not None
        assert result.action is AuditAction.UPDATE
        assert result.entity_type is EntityType.TICKET
        assert db_session.query(AuditLogRecord).count() == 1

    def test_missing_user_id_returns_none_without_raising(self, recorder, db_session):
        assert recorder.record(entry(user_id=None)) is None
        assert db_session.query(AuditLogRecord).count() == 0

    def test_each_required_field(self, recorder):
        for name in ("action", "entity_type", "entity_id", "user_id"):
            assert recorder.record(entry(**{name: None})) is None, name

    def test_none_input(self, recorder):
        assert recorder.record(None) is None

    def test_invalid_action_and_entity_type(self, recorder, db_session):
        assert recorder.record(entry(action="ARCHIVE")) is None
        assert recorder.record(entry(entity_type="INVOICE")) is None
        assert db_session.query(AuditLogRecord).count() == 0

    def test_string_enum_values_accepted(self, recorder):
        result = recorder.record(entry(action="APPROVE", entity_type="TICKET"))
        assert result.action is AuditAction.APPROVE

    def test_caller_timestamp_is_ignored(self, db_session):
        stamped = datetime(2024, 5, 1, 12, 0, 0)
        recorder = AuditRecorder(AuditLogRepository(db_session), clock=lambda: stamped)
        result = recorder.record(entry(timestamp=datetime(1999, 1, 1)))
        assert result.timestamp == stamped

    def test_values_are_sanitized(self, recorder, db_session):
        recorder.record(entry(
            previous_value={"password": "old", "title": "a"},
            new_value={"token": "t", "title": "b"},
        ))
        stored = db_session.query(AuditLogRecord).one()
        assert stored.previous_value == {"password": REDACTED, "title": "a"}
        assert stored.new_value == {"token": REDACTED, "title": "b"}

    def test_nested_redaction_setting(self, db_session, clock):
        recorder = AuditRecorder(AuditLogRepository(db_session), clock=clock, redact_nested=True)
        result = recorder.record(entry(new_value={"chemicalConfig": {"secret": "s"}}))
        assert result.new_value == {"chemicalConfig": {"secret": REDACTED}}

    def test_storage_failure_returns_none(self, db_session, clock):
        recorder = AuditRecorder(FailingRepository(db_session), clock=clock)
        assert recorder.record(entry()) is None

    def test_role_member_stored_as_value(self, recorder, db_session):
        recorder.record(entry(user_role=UserRole.ADMIN))
        assert db_session.query(AuditLogRecord).one().user_role == "ADMIN"

    def test_storage_failure_rolls_back(self, db_session, clock):
        repository = FailingRepository(db_session)
        AuditRecorder(repository, clock=clock).record(entry())
        assert repository.rollbacks == 1

    def test_records_request_metadata(self, recorder):
        result = recorder.record(entry(ip_address="10.0.0.7", user_agent="pytest"))
        assert result.ip_address == "10.0.0.7"
        assert result.user_agent == "pytest"


class TestQueries:
    def test_status_history_is_ascending_regardless_of_insertion(self, db_session):
        t1 = datetime(2024, 3, 1, 9, 0, 0)
        t2 = t1 + timedelta(hours=1)
        t3 = t1 + timedelta(hours=2)
        # Inserted out of order: t3 first, then t1, then t2
        recorder = AuditRecorder(AuditLogRepository(db_session), clock=SequenceClock(t3, t1, t2))
        recorder.record(status_change("t-1", "PENDING", "APPROVED"))
        recorder.record(status_change("t-1", "DRAFT", "PENDING"))
        recorder.record(status_change("t-1", "PENDING", "PENDING"))

        history = recorder.status_history("t-1")
        assert [e.timestamp for e in history] == [t1, t2, t3]

    def test_status_history_filters_action_and_ticket(self, recorder):
        recorder.record(status_change("t-1", "DRAFT", "PENDING"))
        recorder.record(entry(action=AuditAction.APPROVE))
        recorder.record(status_change("t-2", "DRAFT", "PENDING"))

        history = recorder.status_history("t-1")
        assert len(history) == 1
        assert history[0].new_value == {"status": "PENDING"}

    def test_timestamp_ties_keep_insertion_order(self, db_session):
        same = datetime(2024, 3, 1, 9, 0, 0)
        recorder = AuditRecorder(AuditLogRepository(db_session), clock=lambda: same)
        first = recorder.record(status_change("t-1", "DRAFT", "PENDING"))
        second = recorder.record(status_change("t-1", "PENDING", "APPROVED"))
        assert [e.id for e in recorder.status_history("t-1")] == [first.id, second.id]

    def test_status_history_in_range(self, recorder, clock):
        start = clock.now
        for _ in range(5):
            recorder.record(status_change("t-1", "DRAFT", "PENDING"))
        end = clock.now

        total, page = recorder.status_history_in_range("t-1", start, end, limit=2, offset=2)
        assert total == 5
        assert len(page) == 2
        assert page[0].timestamp < page[1].timestamp
        assert page[0].timestamp == start + timedelta(seconds=2)

    def test_status_history_range_excludes_outside(self, recorder, clock):
        recorder.record(status_change("t-1", "DRAFT", "PENDING"))
        later = clock.now
        recorder.record(status_change("t-1", "PENDING", "APPROVED"))

        total, entries = recorder.status_history_in_range("t-1", later, later + timedelta(days=1))
        assert total == 1
        assert entries[0].new_value == {"status": "APPROVED"}

    def test_entity_logs_descending(self, recorder):
        recorder.record(entry(action=AuditAction.CREATE))
        recorder.record(entry(action=AuditAction.UPDATE))
        recorder.record(entry(action=AuditAction.DELETE))

        logs = recorder.entity_logs(EntityType.TICKET, "t-1")
        assert [e.action for e in logs] == [AuditAction.DELETE, AuditAction.UPDATE, AuditAction.CREATE]

    def test_entity_logs_pagination(self, recorder):
        for _ in range(4):
            recorder.record(entry())
        assert len(recorder.entity_logs("TICKET", "t-1", limit=3)) == 3
        assert len(recorder.entity_logs("TICKET", "t-1", limit=3, offset=3)) == 1

    def test_recent_and_user_activity(self, recorder):
        recorder.record(entry(user_id="u1"))
        recorder.record(entry(user_id="u2"))
        recorder.record(entry(user_id="u1", action=AuditAction.DELETE))

        recent = recorder.recent_activity()
        assert [e.user_id for e in recent] == ["u1", "u2", "u1"]
        assert recent[0].action is AuditAction.DELETE

        mine = recorder.user_activity("u1")
        assert len(mine) == 2
        assert all(e.user_id == "u1" for e in mine)

    def test_invalid_input_returns_empty(self, recorder):
        now = datetime(2024, 3, 1)
        assert recorder.entity_logs(None, "t-1") == []
        assert recorder.entity_logs("INVOICE", "t-1") == []
        assert recorder.status_history("") == []
        assert recorder.status_history_count(None, now, now) == 0
        assert recorder.status_history_in_range(None, now, now) == (0, [])
        assert recorder.user_activity("") == []

    def test_storage_failure_returns_empty(self, db_session, clock):
        recorder = AuditRecorder(FailingRepository(db_session), clock=clock)
        now = datetime(2024, 3, 1)
        assert recorder.entity_logs("TICKET", "t-1") == []
        assert recorder.status_history("t-1") == []
        assert recorder.status_history_in_range("t-1", now, now) == (0, [])
        assert recorder.recent_activity() == []
        assert recorder.user_activity("u1") == []

    def test_failed_query_rolls_back_each_statement(self, db_session, clock):
        repository = FailingRepository(db_session)
        recorder = AuditRecorder(repository, clock=clock)
        now = datetime(2024, 3, 1)
        # count and page query each fail and each release the aborted transaction
        assert recorder.status_history_in_range("t-1", now, now) == (0, [])
        assert repository.rollbacks == 2


class TestAppendOnly:
    def test_repository_has_no_update_or_delete(self):
        assert not hasattr(AuditLogRepository, "update")
        assert not hasattr(AuditLogRepository, "delete")
        assert not hasattr(AuditRecorder, "delete")
