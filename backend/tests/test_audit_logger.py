"""
Tests for the audit trail.
"""

import json

import pytest

from gl_recon.models import AuditAction, AuditEntry
from gl_recon.utils.audit_logger import AuditLogger


@pytest.fixture
def audit(settings):
    trail = AuditLogger("run-test", settings)
    trail.log(AuditEntry(action=AuditAction.RUN_STARTED, period="2024-04", message="start"))
    trail.log_many([
        AuditEntry(action=AuditAction.EXACT_MATCH, entity_ids=["gl1", "fc1"], message="exact"),
        AuditEntry(
            action=AuditAction.MATCH_SKIPPED,
            entity_ids=["gl2", "fc2"],
            message="skipped",
            success=False,
        ),
    ])
    return trail


class TestAuditLogger:
    """Test suite for the audit trail."""

    def test_filters(self, audit):
        assert len(audit.get_entries()) == 3
        assert [e.message for e in audit.get_entries(action_filter="exact_match")] == ["exact"]
        assert len(audit.get_entries(success_only=True)) == 2
        assert [e.message for e in audit.get_entries(entity_id="fc2")] == ["skipped"]

    def test_summary(self, audit):
        summary = audit.summary()

        assert summary["total_entries"] == 3
        assert summary["error_count"] == 1
        assert summary["action_counts"]["match_skipped"] == 1

    def test_export_to_reports_dir(self, audit, settings):
        path = audit.export_to_file()

        assert path == settings.reports_dir / "audit_run-test.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["trail_id"] == "run-test"
        assert data["total_entries"] == 3
        assert data["entries"][1]["entity_ids"] == ["gl1", "fc1"]
        assert data["entries"][2]["success"] is False
        assert data["action_counts"]["exact_match"] == 1

    def test_export_to_explicit_path(self, audit, tmp_path):
        path = audit.export_to_file(tmp_path / "nested" / "trail.json")

        assert path.exists()

    def test_bounded_trail_keeps_most_recent(self, settings):
        trail = AuditLogger("bounded", settings, max_entries=2)

        for i in range(5):
            trail.log(AuditEntry(action=AuditAction.MANUAL_MATCH, message=f"match {i}"))

        assert [e.message for e in trail.get_entries()] == ["match 3", "match 4"]
        assert trail.summary()["total_entries"] == 2
        assert trail.summary()["dropped_entries"] == 3
