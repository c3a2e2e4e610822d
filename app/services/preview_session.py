"""
Interactive preview state for one report session.

The session holds an immutable ``PreviewState`` (base snapshot, enhanced
snapshot, theme). Renders read the current state reference without locking
and never see a half-updated pair; the two writers, configuration edits and
enhancement merges, build a new state and swap it in under a lock.
"""

import dataclasses
import threading
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from app.reports.document import Document, RenderOptions
from app.reports.snapshot import AuditSnapshot
from app.reports.theme import ResolvedTheme, resolve
from app.services import report_service
from app.services.enhancement_client import EnhancementJobClient
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PreviewState:
    snapshot: AuditSnapshot
    theme: ResolvedTheme
    enhanced: Optional[AuditSnapshot] = None
    version: int = 0

    @property
    def render_snapshot(self) -> AuditSnapshot:
        return self.enhanced if self.enhanced is not None else self.snapshot


class PreviewSession:
    """
    Copy-on-write (snapshot, theme) pair shared by the preview render and
    the enhancement merge.

    Args:
        snapshot: Base (non-enhanced) audit snapshot
        tenant_defaults: Tenant branding layer for ``resolve``
        user_overrides: Initial user configuration
        client: Enhancement client whose current job may merge
        options: Render options used by ``render``
    """

    def __init__(
        self,
        snapshot: AuditSnapshot,
        tenant_defaults: Optional[Mapping[str, Any]] = None,
        user_overrides: Optional[Mapping[str, Any]] = None,
        client: Optional[EnhancementJobClient] = None,
        options: Optional[RenderOptions] = None,
    ):
        self.client = client
        self.options = options or RenderOptions()
        self._tenant_defaults: Dict[str, Any] = dict(tenant_defaults or {})
        self._user_overrides: Dict[str, Any] = dict(user_overrides or {})
        self._lock = threading.Lock()
        self._state = PreviewState(
            snapshot=snapshot,
            theme=resolve(self._tenant_defaults, self._user_overrides),
        )

    @property
    def state(self) -> PreviewState:
        return self._state

    def update_configuration(self, user_overrides: Mapping[str, Any]) -> PreviewState:
        """Merge ``user_overrides`` into the user layer and re-resolve the theme."""
        with self._lock:
            merged = dict(self._user_overrides)
            for key, value in user_overrides.items():
                if key in ("includeOptions", "include_options") and isinstance(
                    merged.get(key), Mapping
                ) and isinstance(value, Mapping):
                    toggles = dict(merged[key])
                    toggles.update(value)
                    merged[key] = toggles
                else:
                    merged[key] = value
            theme = resolve(self._tenant_defaults, merged)
            self._user_overrides = merged
            self._state = dataclasses.replace(
                self._state, theme=theme, version=self._state.version + 1
            )
            state = self._state
        logger.debug("Preview configuration updated", version=state.version)
        return state

    def apply_merge(self, job_id: str) -> bool:
        """
        Apply completed content from ``job_id``.

        Returns:
            True when the preview now shows the job's content; False when the
            job is stale, not completed or has no content
        """
        if self.client is None:
            return False
        with self._lock:
            base = self._state.snapshot
            enriched = self.client.merge(job_id, base)
            if enriched is base:
                return False
            self._state = dataclasses.replace(
                self._state, enhanced=enriched, version=self._state.version + 1
            )
        logger.info("Enhancement merged into preview", job_id=job_id)
        return True

    def revert_enhancement(self) -> PreviewState:
        """Drop merged content and show the base snapshot again."""
        with self._lock:
            self._state = dataclasses.replace(
                self._state, enhanced=None, version=self._state.version + 1
            )
            return self._state

    def render(self) -> Document:
        state = self._state
        return report_service.build_document(state.render_snapshot, state.theme, self.options)

    def render_pdf(self) -> bytes:
        state = self._state
        _, _, pdf_bytes = report_service.build_report(
            state.render_snapshot, state.theme, self.options
        )
        return pdf_bytes
