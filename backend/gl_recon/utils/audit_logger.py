"""
Audit trail of matching decisions and overrides.

Entries stay in memory for the lifetime of a run (or of an override
handler, which keeps only the most recent ones), are echoed to structlog
as they arrive, and can be written out as a JSON document for reviewers.
"""

import json
from collections import Counter, deque
from pathlib import Path
from typing import Any, Deque, Dict, Iterable, List, Optional

import structlog

from ..config import Settings, get_settings
from ..models import AuditAction, AuditEntry
from ..models.ledger import utcnow

logger = structlog.get_logger()


def _entry_to_dict(entry: AuditEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "timestamp": entry.timestamp.isoformat(),
        "action": entry.action.value,
        "entity_ids": list(entry.entity_ids),
        "period": entry.period,
        "message": entry.message,
        "details": entry.details,
        "success": entry.success,
        "error_message": entry.error_message,
    }


class AuditLogger:
    """Ordered audit entries under one trail id."""

    def __init__(
        self,
        trail_id: str,
        settings: Optional[Settings] = None,
        max_entries: Optional[int] = None,
    ):
        self.trail_id = trail_id
        self.settings = settings or get_settings()
        # Oldest entries fall off once max_entries is reached
        self.entries: Deque[AuditEntry] = deque(maxlen=max_entries)
        self.dropped = 0

    def log(self, entry: AuditEntry) -> None:
        if self.entries.maxlen is not None and len(self.entries) == self.entries.maxlen:
            self.dropped += 1
        self.entries.append(entry)

        # Failed decisions surface as warnings
        emit = logger.info if entry.success else logger.warning
        emit(
            entry.message,
            trail_id=self.trail_id,
            action=entry.action.value,
            entity_ids=entry.entity_ids,
            period=entry.period,
            error=entry.error_message,
        )

    def log_many(self, entries: Iterable[AuditEntry]) -> None:
        for entry in entries:
            self.log(entry)

    def get_entries(
        self,
        action_filter: Optional[str] = None,
        success_only: bool = False,
        entity_id: Optional[str] = None,
    ) -> List[AuditEntry]:
        """
        Entries in arrival order, optionally narrowed.

        Args:
            action_filter: AuditAction value to keep
            success_only: Drop entries recording a failed decision
            entity_id: Keep only entries touching this GL entry or forecast line
        """
        action = AuditAction(action_filter) if action_filter else None
        return [
            e for e in self.entries
            if (action is None or e.action is action)
            and (not success_only or e.success)
            and (entity_id is None or entity_id in e.entity_ids)
        ]

    def summary(self) -> Dict[str, Any]:
        """Counts by action and outcome."""
        failures = sum(1 for e in self.entries if not e.success)
        return {
            "total_entries": len(self.entries),
            "success_count": len(self.entries) - failures,
            "error_count": failures,
            "action_counts": dict(Counter(e.action.value for e in self.entries)),
            "dropped_entries": self.dropped,
        }

    def export_to_file(self, output_path: Optional[Path] = None) -> Path:
        """Write the trail as JSON; defaults to ``reports_dir/audit_<trail_id>.json``."""
        path = output_path or self.settings.reports_dir / f"audit_{self.trail_id}.json"
        path.parent.mkdir(parents=True, exist_ok=True)

        document = {
            "trail_id": self.trail_id,
            "exported_at": utcnow().isoformat(),
            **self.summary(),
            "entries": [_entry_to_dict(e) for e in self.entries],
        }
        path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")

        logger.info("Audit trail exported", trail_id=self.trail_id, path=str(path))
        return path
