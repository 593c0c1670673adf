from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StageStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class Stage(str, Enum):
    RENDER = "render"
    UPLOAD = "upload"
    LINK = "link"


class ErrorCode(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    INVALID_JSON = "INVALID_JSON"
    MISSING_SLUG = "MISSING_SLUG"
    MISSING_IDENTIFIERS = "MISSING_IDENTIFIERS"
    RENDER_FAILED = "RENDER_FAILED"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    LINK_FAILED = "LINK_FAILED"
    WRONG_CONTENT_TYPE = "WRONG_CONTENT_TYPE"
    NOT_FOUND = "NOT_FOUND"
    VERSION_CONFLICT = "VERSION_CONFLICT"
    MALFORMED_URN = "MALFORMED_URN"
    INTERNAL = "INTERNAL"


class ErrorCategory(str, Enum):
    AUTH = "AUTH"
    VALIDATION = "VALIDATION"
    LOOP_PREVENTED = "LOOP_PREVENTED"
    RENDER_FAILED = "RENDER_FAILED"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    LINK_FAILED = "LINK_FAILED"
    MALFORMED_URN = "MALFORMED_URN"
    INTERNAL = "INTERNAL"


ERROR_CATEGORIES: Dict[ErrorCode, ErrorCategory] = {
    ErrorCode.UNAUTHENTICATED: ErrorCategory.AUTH,
    ErrorCode.INVALID_JSON: ErrorCategory.VALIDATION,
    ErrorCode.MISSING_SLUG: ErrorCategory.VALIDATION,
    ErrorCode.MISSING_IDENTIFIERS: ErrorCategory.VALIDATION,
    ErrorCode.RENDER_FAILED: ErrorCategory.RENDER_FAILED,
    ErrorCode.UPLOAD_FAILED: ErrorCategory.UPLOAD_FAILED,
    ErrorCode.LINK_FAILED: ErrorCategory.LINK_FAILED,
    ErrorCode.WRONG_CONTENT_TYPE: ErrorCategory.LINK_FAILED,
    ErrorCode.NOT_FOUND: ErrorCategory.LINK_FAILED,
    ErrorCode.VERSION_CONFLICT: ErrorCategory.LINK_FAILED,
    ErrorCode.MALFORMED_URN: ErrorCategory.MALFORMED_URN,
    ErrorCode.INTERNAL: ErrorCategory.INTERNAL,
}

HTTP_STATUS_BY_CATEGORY: Dict[ErrorCategory, int] = {
    ErrorCategory.AUTH: 401,
    ErrorCategory.VALIDATION: 400,
}


def http_status_for(code: Optional[ErrorCode]) -> int:
    if code is None:
        return 200
    return HTTP_STATUS_BY_CATEGORY.get(ERROR_CATEGORIES[code], 500)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WebhookEvent(CamelModel):
    entity_id: Optional[str] = None
    space_id: Optional[str] = None
    environment: str = "master"
    slug: Dict[str, str] = Field(default_factory=dict)
    actor_id: Optional[str] = None
    published_by: Optional[str] = None
    updated_by: Optional[str] = None
    # True when actor_id came from actorId/userId rather than sys.publishedBy/updatedBy
    actor_explicit: bool = False
    parameters: Optional[Dict[str, Any]] = None

    def slug_for(self, locale: str) -> Optional[str]:
        value = self.slug.get(locale)
        return value.strip() if value and value.strip() else None


class ErrorDetail(CamelModel):
    code: ErrorCode
    message: str
    field: Optional[str] = None
    stage: Optional[Stage] = None


class StageResult(CamelModel):
    status: StageStatus = StageStatus.PENDING
    reason: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    error: Optional[str] = None
    timestamp: Optional[datetime] = None
    # render
    html_path: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    # upload
    asset_id: Optional[str] = None
    batch_id: Optional[str] = None
    location: Optional[str] = None
    reused_existing: Optional[bool] = None
    # link
    entry_id: Optional[str] = None
    entry_version: Optional[int] = None


class Workflow(CamelModel):
    render: StageResult = Field(default_factory=StageResult)
    upload: StageResult = Field(default_factory=StageResult)
    link: StageResult = Field(default_factory=StageResult)

    def stages(self) -> Dict[Stage, StageResult]:
        return {Stage.RENDER: self.render, Stage.UPLOAD: self.upload, Stage.LINK: self.link}


class AssetReference(CamelModel):
    """Typed link written into the CMS entry."""

    type: str = "Link"
    link_type: str = "Asset"
    id: str

    def to_sys(self) -> Dict[str, Any]:
        return {"sys": {"type": self.type, "linkType": self.link_type, "id": self.id}}


class OutcomeMetadata(CamelModel):
    slug: Optional[str] = None
    entity_id: Optional[str] = None
    space_id: Optional[str] = None
    environment: Optional[str] = None
    actor_id: Optional[str] = None
    published_by: Optional[str] = None
    updated_by: Optional[str] = None
    system_actor_id: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
    processed_at: datetime


class PipelineOutcome(CamelModel):
    success: bool
    skipped: bool = False
    reason: Optional[str] = None
    message: str
    error: Optional[ErrorDetail] = None
    workflow: Workflow = Field(default_factory=Workflow)
    asset: Optional[AssetReference] = None
    metadata: OutcomeMetadata

    @property
    def http_status(self) -> int:
        return http_status_for(self.error.code if self.error else None)

    @property
    def failed_stage(self) -> Optional[Stage]:
        for stage, result in self.workflow.stages().items():
            if result.status == StageStatus.FAILED:
                return stage
        return None

    def to_response_body(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PageContent(CamelModel):
    entry: Dict[str, Any]
    related_conditions: List[Dict[str, Any]] = Field(default_factory=list)
    related_treatments: List[Dict[str, Any]] = Field(default_factory=list)
