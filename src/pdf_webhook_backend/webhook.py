"""
Webhook orchestration for the render -> upload -> link pipeline.

This module turns one CMS change webhook into at most one PDF publication:
- Normalising the differently shaped webhook payloads into a WebhookEvent
- Authenticating the delivery against the shared secret (when configured)
- Short-circuiting deliveries caused by the pipeline's own CMS writes
- Validating the slug and entry identifiers before any side effect
- Running render, upload and link strictly in sequence
- Recording every stage's status in a single PipelineOutcome

The WebhookOrchestrator holds no per-delivery state. Its collaborators are
constructed elsewhere and injected, so tests can substitute fakes.
"""

from __future__ import annotations

import hmac
import logging
from contextlib import contextmanager
from threading import Lock
from typing import Any, Dict, Iterator, Optional, Tuple
from urllib.parse import quote

from omegaconf import DictConfig

from .dam import AssetRepository, UploadResult
from .entry_updater import EntryUpdater, LinkResult
from .models import (
    AssetReference,
    ErrorCode,
    ErrorDetail,
    OutcomeMetadata,
    PipelineOutcome,
    Stage,
    StageResult,
    StageStatus,
    WebhookEvent,
    Workflow,
)
from .renderer import PdfRenderer, RenderResult
from .utils import dig, pdf_file_name, utcnow

logger = logging.getLogger(__name__)

LOOP_PREVENTION_REASON = "infinite-loop-prevention"
MISSING_IDENTIFIERS_REASON = "missing identifiers"

REJECTION_MESSAGES = {
    ErrorCode.UNAUTHENTICATED: "Authentication failed",
    ErrorCode.INTERNAL: "PDF generation workflow encountered a critical error",
}


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def adapt_payload(body: Any, canonical_locale: str = "en-US", default_environment: str = "master") -> WebhookEvent:
    """
    Normalise a webhook body into a WebhookEvent.

    Custom webhook bodies carry flat keys (``entityId``, ``spaceId``,
    ``actorId`` or ``userId``); raw entry payloads carry the same facts under
    ``sys`` and ``fields``. The acting user is taken from, in order, ``actorId``,
    ``userId``, ``sys.publishedBy`` and ``sys.updatedBy``; ``actor_explicit``
    records whether one of the first two was present.

    Raises:
        ValueError: If the body is not a JSON object
    """
    if not isinstance(body, dict):
        raise ValueError("Webhook payload must be a JSON object")

    published_by = _text(dig(body, "sys", "publishedBy", "sys", "id"))
    updated_by = _text(dig(body, "sys", "updatedBy", "sys", "id"))
    explicit_actor = _text(body.get("actorId")) or _text(body.get("userId"))
    actor_id = explicit_actor or published_by or updated_by

    raw_slug = body.get("slug", dig(body, "fields", "slug"))
    if isinstance(raw_slug, dict):
        slug = {locale: value for locale, value in raw_slug.items() if isinstance(value, str)}
    elif isinstance(raw_slug, str):
        slug = {canonical_locale: raw_slug}
    else:
        slug = {}

    parameters = body.get("parameters")
    return WebhookEvent(
        entity_id=_text(body.get("entityId")) or _text(dig(body, "sys", "id")),
        space_id=_text(body.get("spaceId")) or _text(dig(body, "sys", "space", "sys", "id")),
        environment=_text(body.get("environment")) or _text(dig(body, "sys", "environment", "sys", "id")) or default_environment,
        slug=slug,
        actor_id=actor_id,
        published_by=published_by,
        updated_by=updated_by,
        actor_explicit=explicit_actor is not None,
        parameters=parameters if isinstance(parameters, dict) else None,
    )


class WebhookOrchestrator:
    """
    Runs the PDF publication pipeline for one webhook delivery.

    Gates are applied in order (authentication, loop prevention, validation)
    and none of them touches an external system. Stages then run strictly in
    sequence; a failed stage marks every later stage as skipped and keeps the
    progress of earlier stages in the outcome. Nothing is retried here: the
    CMS redelivering the webhook is the retry, which is safe because the
    upload stage is idempotent per file name and entry id.

    Thread Safety:
        With ``webhook.serialize_per_entity`` enabled, deliveries for the same
        entry id are serialised by an in-process lock. Deliveries handled by
        other processes are not.
    """

    def __init__(
        self,
        config: DictConfig,
        renderer: PdfRenderer,
        assets: AssetRepository,
        entries: EntryUpdater,
    ) -> None:
        self.config = config
        self.renderer = renderer
        self.assets = assets
        self.entries = entries
        # entity id -> (lock, deliveries holding or waiting on it)
        self._entity_locks: Dict[str, Tuple[Lock, int]] = {}
        self._guard = Lock()

    @property
    def canonical_locale(self) -> str:
        return self.config.webhook.canonical_locale

    @property
    def system_actor_id(self) -> str:
        return self.config.webhook.system_actor_id

    def close(self) -> None:
        """Close the asset store and CMS clients."""
        self.assets.close()
        self.entries.close()

    def adapt(self, body: Any) -> WebhookEvent:
        return adapt_payload(body, self.canonical_locale, self.config.webhook.default_environment)

    def authenticate(self, credentials: Optional[str]) -> bool:
        """True when no secret is configured or ``credentials`` matches it."""
        expected = self.config.webhook.secret
        if not expected:
            return True
        if not credentials:
            return False
        return hmac.compare_digest(credentials.encode("utf-8"), str(expected).encode("utf-8"))

    def caused_by_system(self, event: WebhookEvent) -> bool:
        """
        True when the delivery was triggered by the system actor's own write.

        An explicit ``actorId``/``userId`` is trusted as is. Raw entry payloads
        are attributed to the system when either ``sys.updatedBy`` or
        ``sys.publishedBy`` is the system actor: the link is saved without
        publishing, so its save event still names the last human publisher.
        """
        system = self.system_actor_id
        if not system:
            return False
        if event.actor_explicit:
            return event.actor_id == system
        return system in (event.actor_id, event.published_by, event.updated_by)

    def render_target(self, slug: str) -> str:
        base_url = str(self.config.app.base_url).rstrip("/")
        page_route = str(self.config.app.page_route).strip("/")
        return f"{base_url}/{page_route}/{quote(slug)}"

    # ------------------------------------------------------------------
    # outcome construction
    # ------------------------------------------------------------------
    def _metadata(self, event: Optional[WebhookEvent]) -> OutcomeMetadata:
        if event is None:
            return OutcomeMetadata(processed_at=utcnow())
        return OutcomeMetadata(
            slug=event.slug_for(self.canonical_locale),
            entity_id=event.entity_id,
            space_id=event.space_id,
            environment=event.environment,
            actor_id=event.actor_id,
            published_by=event.published_by,
            updated_by=event.updated_by,
            system_actor_id=self.system_actor_id,
            parameters=event.parameters,
            processed_at=utcnow(),
        )

    @staticmethod
    def _skipped(reason: str) -> Workflow:
        return Workflow(
            render=StageResult(status=StageStatus.SKIPPED, reason=reason),
            upload=StageResult(status=StageStatus.SKIPPED, reason=reason),
            link=StageResult(status=StageStatus.SKIPPED, reason=reason),
        )

    def reject(
        self,
        code: ErrorCode,
        message: str,
        event: Optional[WebhookEvent] = None,
        field: Optional[str] = None,
    ) -> PipelineOutcome:
        """Outcome for a delivery refused before any stage ran."""
        logger.warning(f"Webhook rejected ({code.value}): {message}")
        return PipelineOutcome(
            success=False,
            message=REJECTION_MESSAGES.get(code, "Validation failed"),
            error=ErrorDetail(code=code, message=message, field=field),
            workflow=self._skipped(code.value),
            metadata=self._metadata(event),
        )

    def _loop_prevented(self, event: WebhookEvent) -> PipelineOutcome:
        logger.info(
            f"Skipping PDF generation for entry {event.entity_id}: change made by system actor "
            f"{self.system_actor_id} (preventing infinite loop)"
        )
        return PipelineOutcome(
            success=True,
            skipped=True,
            reason=LOOP_PREVENTION_REASON,
            message="Webhook skipped - change made by system actor",
            workflow=self._skipped(LOOP_PREVENTION_REASON),
            metadata=self._metadata(event),
        )

    @staticmethod
    def _mark_failed(result: StageResult, code: Optional[ErrorCode], error: Optional[str]) -> None:
        result.status = StageStatus.FAILED
        result.error_code = code
        result.error = error
        result.timestamp = utcnow()

    @staticmethod
    def _mark_completed(result: StageResult, **details: Any) -> None:
        result.status = StageStatus.COMPLETED
        result.timestamp = utcnow()
        for key, value in details.items():
            setattr(result, key, value)

    @staticmethod
    def _skip_pending(workflow: Workflow, reason: str) -> None:
        for result in workflow.stages().values():
            if result.status == StageStatus.PENDING:
                result.status = StageStatus.SKIPPED
                result.reason = reason

    def _fail_outcome(self, outcome: PipelineOutcome, stage: Stage, code: ErrorCode, error: Optional[str], message: str) -> PipelineOutcome:
        self._skip_pending(outcome.workflow, f"{stage.value} failed")
        outcome.success = False
        outcome.message = message
        outcome.error = ErrorDetail(code=code, message=error or code.value, stage=stage)
        return outcome

    # ------------------------------------------------------------------
    # stage boundaries
    # ------------------------------------------------------------------
    def _render(self, url: str, slug: str) -> RenderResult:
        try:
            return self.renderer.render(url, slug)
        except Exception as exc:
            logger.exception(f"Renderer raised while rendering {url}")
            return RenderResult(success=False, file_name=pdf_file_name(slug), error_code=ErrorCode.RENDER_FAILED, error=str(exc))

    def _upload(self, content: bytes, file_name: str, correlation_id: str) -> UploadResult:
        try:
            return self.assets.upload(content, file_name, correlation_id)
        except Exception as exc:
            logger.exception(f"Asset repository raised while uploading {file_name}")
            return UploadResult(success=False, error_code=ErrorCode.UPLOAD_FAILED, error=str(exc))

    def _link(self, event: WebhookEvent, upload: UploadResult) -> LinkResult:
        try:
            return self.entries.link(event.entity_id, event.space_id, event.environment, upload.asset)
        except Exception as exc:
            logger.exception(f"Entry updater raised while linking entry {event.entity_id}")
            return LinkResult(success=False, entry_id=event.entity_id or "", error_code=ErrorCode.LINK_FAILED, error=str(exc))

    @contextmanager
    def _entity_lock(self, entity_id: Optional[str]) -> Iterator[None]:
        if not (entity_id and self.config.webhook.serialize_per_entity):
            yield
            return
        with self._guard:
            lock, users = self._entity_locks.get(entity_id, (Lock(), 0))
            self._entity_locks[entity_id] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                lock, users = self._entity_locks[entity_id]
                if users == 1:
                    del self._entity_locks[entity_id]
                else:
                    self._entity_locks[entity_id] = (lock, users - 1)

    # ------------------------------------------------------------------
    # entry point
    # ------------------------------------------------------------------
    def handle(self, event: WebhookEvent, credentials: Optional[str] = None) -> PipelineOutcome:
        """
        Process one webhook delivery.

        Args:
            event: Normalised webhook event
            credentials: Value of the shared-secret header, if any

        Returns:
            PipelineOutcome describing every stage; ``http_status`` gives the
            status code the caller should see
        """
        if not self.authenticate(credentials):
            return self.reject(ErrorCode.UNAUTHENTICATED, "Missing or invalid webhook secret", event)

        if self.caused_by_system(event):
            return self._loop_prevented(event)

        slug = event.slug_for(self.canonical_locale)
        if not slug:
            return self.reject(
                ErrorCode.MISSING_SLUG,
                "Missing required field: slug",
                event,
                field=f'slug["{self.canonical_locale}"]',
            )

        link_enabled = bool(event.entity_id and event.space_id)
        if not link_enabled and self.config.webhook.missing_identifiers == "reject":
            missing = "entityId" if not event.entity_id else "spaceId"
            return self.reject(ErrorCode.MISSING_IDENTIFIERS, f"Missing required field: {missing}", event, field=missing)

        with self._entity_lock(event.entity_id):
            return self._run_pipeline(event, slug, link_enabled)

    def _run_pipeline(self, event: WebhookEvent, slug: str, link_enabled: bool) -> PipelineOutcome:
        outcome = PipelineOutcome(success=False, message="PDF generation workflow started", metadata=self._metadata(event))
        workflow = outcome.workflow

        url = self.render_target(slug)
        workflow.render.html_path = url
        rendered = self._render(url, slug)
        if not rendered.success:
            self._mark_failed(workflow.render, rendered.error_code or ErrorCode.RENDER_FAILED, rendered.error)
            return self._fail_outcome(
                outcome, Stage.RENDER, ErrorCode.RENDER_FAILED, rendered.error, "PDF generation workflow failed at PDF generation"
            )
        self._mark_completed(workflow.render, file_name=rendered.file_name, file_size=rendered.size)

        correlation_id = event.entity_id or slug
        uploaded = self._upload(rendered.buffer or b"", rendered.file_name or pdf_file_name(slug), correlation_id)
        if not uploaded.success or uploaded.asset is None:
            self._mark_failed(workflow.upload, uploaded.error_code or ErrorCode.UPLOAD_FAILED, uploaded.error)
            return self._fail_outcome(
                outcome, Stage.UPLOAD, ErrorCode.UPLOAD_FAILED, uploaded.error, "PDF generation workflow failed at asset upload"
            )
        asset = uploaded.asset
        self._mark_completed(
            workflow.upload,
            asset_id=asset.id,
            batch_id=asset.batch_id,
            location=asset.location,
            reused_existing=uploaded.reused_existing,
        )
        outcome.asset = AssetReference(id=asset.id)

        if not link_enabled:
            logger.warning(f"Missing entityId or spaceId - skipping CMS update for asset {asset.id}")
            workflow.link.status = StageStatus.SKIPPED
            workflow.link.reason = MISSING_IDENTIFIERS_REASON
        else:
            linked = self._link(event, uploaded)
            if not linked.success:
                code = linked.error_code or ErrorCode.LINK_FAILED
                self._mark_failed(workflow.link, code, linked.error)
                workflow.link.entry_id = linked.entry_id
                return self._fail_outcome(
                    outcome, Stage.LINK, code, linked.error, "PDF generation workflow failed at CMS update"
                )
            self._mark_completed(workflow.link, entry_id=linked.entry_id, entry_version=linked.entry_version)

        outcome.success = True
        outcome.message = "PDF generation workflow completed successfully"
        logger.info(f"Published {rendered.file_name} as asset {asset.id} for entry {event.entity_id}")
        return outcome
