"""
Audit data collaborator.

Audit records and tenant branding are produced elsewhere (crawler, settings
screens). The report engine reads them through ``AuditSource``; the default
implementation is an in-process registry that callers populate.
"""

import threading
from typing import Any, Dict, Mapping, Optional

from app.reports.snapshot import AuditSnapshot
from app.utils.error_handler import AuditNotFoundError
from app.utils.logger import get_logger

logger = get_logger(__name__)


class AuditSource:
    """Thread-safe registry of raw audit records and their tenant settings."""

    def __init__(self):
        self._lock = threading.Lock()
        self._audits: Dict[str, Mapping[str, Any]] = {}
        self._tenant_settings: Dict[str, Mapping[str, Any]] = {}

    def register(
        self,
        audit_id: str,
        record: Mapping[str, Any],
        tenant_settings: Optional[Mapping[str, Any]] = None,
    ) -> None:
        with self._lock:
            self._audits[audit_id] = dict(record)
            if tenant_settings is not None:
                self._tenant_settings[audit_id] = dict(tenant_settings)
        logger.debug("Audit registered", audit_id=audit_id)

    def get_snapshot(self, audit_id: str) -> AuditSnapshot:
        """
        Raises:
            AuditNotFoundError: no record for ``audit_id``
        """
        with self._lock:
            record = self._audits.get(audit_id)
        if record is None:
            raise AuditNotFoundError(audit_id)
        raw = dict(record)
        raw.setdefault("id", audit_id)
        return AuditSnapshot.from_dict(raw)

    def get_tenant_settings(self, audit_id: str) -> Mapping[str, Any]:
        with self._lock:
            return dict(self._tenant_settings.get(audit_id, {}))

    def clear(self) -> None:
        with self._lock:
            self._audits.clear()
            self._tenant_settings.clear()


audit_source = AuditSource()


def get_audit_source() -> AuditSource:
    """FastAPI dependency returning the process-wide audit source."""
    return audit_source
