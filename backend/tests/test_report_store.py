"""
test_report_store.py — Session registry lookup, idle expiry and size cap.

A hand-driven clock replaces time.monotonic so expiry is deterministic.
"""

import os

import pytest

from app.services.chat_service import ChatSession
from app.services.errors import ChatSessionNotFoundError, ReportNotFoundError
from app.services.export_builder import ExportResult
from app.services.report_store import ReportStore


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def report_store(clock):
    return ReportStore(ttl_seconds=60, max_reports=3, max_chats=2, clock=clock)


class TestLookup:

    def test_report_required_by_default(self, report_store, sample_report):
        session = report_store.new_report_session()
        with pytest.raises(ReportNotFoundError):
            report_store.get_report_session(session.report_id)
        assert report_store.get_report_session(session.report_id, require_report=False) is session
        session.load_report(sample_report)
        assert report_store.get_report_session(session.report_id) is session

    def test_unknown_ids(self, report_store):
        with pytest.raises(ReportNotFoundError):
            report_store.get_report_session("nope", require_report=False)
        with pytest.raises(ChatSessionNotFoundError):
            report_store.get_chat("nope")

    def test_discard(self, report_store):
        session = report_store.new_report_session()
        report_store.discard(session.report_id)
        with pytest.raises(ReportNotFoundError):
            report_store.get_report_session(session.report_id, require_report=False)


class TestExpiry:

    def test_idle_session_without_report_expires(self, report_store, clock):
        session = report_store.new_report_session()
        clock.now += 61
        with pytest.raises(ReportNotFoundError):
            report_store.get_report_session(session.report_id, require_report=False)

    def test_access_refreshes_idle_timer(self, report_store, clock):
        session = report_store.new_report_session()
        clock.now += 50
        report_store.get_report_session(session.report_id, require_report=False)
        clock.now += 50
        assert report_store.get_report_session(session.report_id, require_report=False) is session

    def test_busy_session_is_kept(self, report_store, clock):
        session = report_store.new_report_session()
        session.is_analyzing = True
        clock.now += 3600
        assert report_store.purge() == 0
        assert report_store.get_report_session(session.report_id, require_report=False) is session

    def test_chats_expire(self, report_store, clock, fake_llm):
        chat = ChatSession(fake_llm())
        report_store.put_chat(chat)
        clock.now += 61
        with pytest.raises(ChatSessionNotFoundError):
            report_store.get_chat(chat.session_id)


class TestSizeCap:

    def test_least_recently_used_evicted(self, report_store, clock):
        a = report_store.new_report_session()
        b = report_store.new_report_session()
        c = report_store.new_report_session()
        clock.now += 1
        report_store.get_report_session(a.report_id, require_report=False)
        report_store.new_report_session()

        assert report_store.get_report_session(a.report_id, require_report=False) is a
        assert report_store.get_report_session(c.report_id, require_report=False) is c
        with pytest.raises(ReportNotFoundError):
            report_store.get_report_session(b.report_id, require_report=False)

    def test_new_session_survives_when_others_are_busy(self, report_store):
        for _ in range(3):
            report_store.new_report_session().is_exporting = True
        fresh = report_store.new_report_session()
        assert report_store.get_report_session(fresh.report_id, require_report=False) is fresh

    def test_eviction_deletes_export_file(self, report_store, clock, tmp_path):
        session = report_store.new_report_session()
        pdf = tmp_path / "Compliance_evicted.pdf"
        pdf.write_bytes(b"%PDF-1.4\n")
        session.last_export = ExportResult(ok=True, message="done", path=str(pdf))

        clock.now += 61
        report_store.purge()
        assert not os.path.exists(pdf)
