"""API schemas for the contract monitor endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.analysis_report import AnalysisReport
from models.api_spec import ApiSpec
from models.breaking_change import BreakingChange


class ApiSpecSchema(BaseModel):
    id: int
    serviceName: str
    version: str
    specContent: str
    fetchedAt: datetime
    isBaseline: bool = False
    environment: Optional[str] = None
    baselineSetAt: Optional[datetime] = None

    @classmethod
    def from_orm_spec(cls, spec: ApiSpec) -> "ApiSpecSchema":
        return cls(
            id=spec.id,
            serviceName=spec.service_name,
            version=spec.version,
            specContent=spec.spec_content,
            fetchedAt=spec.fetched_at,
            isBaseline=bool(spec.is_baseline),
            environment=spec.environment,
            baselineSetAt=spec.baseline_set_at,
        )


class BreakingChangeSchema(BaseModel):
    id: int
    serviceName: str
    changeType: str
    path: str
    description: str
    oldVersion: Optional[str] = None
    newVersion: Optional[str] = None
    detectedAt: datetime
    aiSuggestion: Optional[str] = None
    predictedImpact: Optional[str] = None
    plainEnglishExplanation: Optional[str] = None
    status: str
    resolvedAt: Optional[datetime] = None
    resolvedBy: Optional[str] = None
    resolutionNotes: Optional[str] = None

    @classmethod
    def from_orm_change(cls, change: BreakingChange) -> "BreakingChangeSchema":
        change_type = change.change_type
        status = change.status
        return cls(
            id=change.id,
            serviceName=change.service_name,
            changeType=getattr(change_type, "value", change_type),
            path=change.path,
            description=change.description,
            oldVersion=change.old_version,
            newVersion=change.new_version,
            detectedAt=change.detected_at,
            aiSuggestion=change.ai_suggestion,
            predictedImpact=change.predicted_impact,
            plainEnglishExplanation=change.plain_english_explanation,
            status=getattr(status, "value", status),
            resolvedAt=change.resolved_at,
            resolvedBy=change.resolved_by,
            resolutionNotes=change.resolution_notes,
        )


class AnalysisReportSchema(BaseModel):
    id: int
    serviceName: str
    breakingChangesCount: int = 0
    nonBreakingChangesCount: int = 0
    summary: Optional[str] = None
    analyzedAt: datetime

    @classmethod
    def from_orm_report(cls, report: AnalysisReport) -> "AnalysisReportSchema":
        return cls(
            id=report.id,
            serviceName=report.service_name,
            breakingChangesCount=report.breaking_changes_count or 0,
            nonBreakingChangesCount=report.non_breaking_changes_count or 0,
            summary=report.summary,
            analyzedAt=report.analyzed_at,
        )


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


class AnalysisRunResponse(BaseModel):
    message: str = "Analysis completed successfully"
    report: AnalysisReportSchema


class BatchAnalysisResponse(BaseModel):
    totalServices: int
    successCount: int
    failCount: int
    results: Dict[str, Dict[str, object]] = Field(default_factory=dict)


class ServiceStatusResponse(BaseModel):
    serviceName: str
    available: bool
    status: str


class AllServiceStatusResponse(BaseModel):
    services: Dict[str, bool] = Field(default_factory=dict)
    onlineCount: int
    totalCount: int


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------


class SpecFetchResponse(BaseModel):
    message: str = "Spec fetched and saved successfully"
    spec: ApiSpecSchema


class SpecExistsResponse(BaseModel):
    serviceName: str
    hasSpecs: bool


class SpecCountResponse(BaseModel):
    totalSpecs: int


class SpecCleanupResponse(BaseModel):
    message: str = "Cleanup completed successfully"
    serviceName: str
    keptVersions: int
    deletedCount: int


# ---------------------------------------------------------------------------
# Baseline
# ---------------------------------------------------------------------------


class BaselineResponse(BaseModel):
    serviceName: str
    hasBaseline: bool
    message: Optional[str] = None
    baseline: Optional[ApiSpecSchema] = None


class BaselineSetResponse(BaseModel):
    message: str
    serviceName: str
    baselineVersion: str
    baselineSetAt: Optional[datetime] = None


class BaselineClearResponse(BaseModel):
    message: str = "Baseline cleared successfully"
    serviceName: str
    clearedCount: int = 0


# ---------------------------------------------------------------------------
# Breaking changes
# ---------------------------------------------------------------------------


class BreakingChangeCountResponse(BaseModel):
    serviceName: str
    breakingChangesCount: int


class BreakingChangeSummaryResponse(BaseModel):
    serviceName: str
    totalBreakingChanges: int
    byType: Dict[str, int] = Field(default_factory=dict)


class BreakingChangeStatisticsResponse(BaseModel):
    totalBreakingChanges: int
    activeBreakingChanges: int
    breakingChangesByType: Dict[str, int] = Field(default_factory=dict)
    breakingChangesByStatus: Dict[str, int] = Field(default_factory=dict)


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None
    resolvedBy: Optional[str] = None
    notes: Optional[str] = None


class AcknowledgeRequest(BaseModel):
    acknowledgedBy: Optional[str] = None


class ResolveRequest(BaseModel):
    resolvedBy: Optional[str] = None
    notes: Optional[str] = None


class IgnoreRequest(BaseModel):
    ignoredBy: Optional[str] = None
    reason: Optional[str] = None


class BreakingChangeUpdateResponse(BaseModel):
    message: str
    breakingChange: BreakingChangeSchema


def spec_list(specs: List[ApiSpec]) -> List[ApiSpecSchema]:
    return [ApiSpecSchema.from_orm_spec(spec) for spec in specs]


def change_list(changes: List[BreakingChange]) -> List[BreakingChangeSchema]:
    return [BreakingChangeSchema.from_orm_change(change) for change in changes]


def report_list(reports: List[AnalysisReport]) -> List[AnalysisReportSchema]:
    return [AnalysisReportSchema.from_orm_report(report) for report in reports]


__all__ = [
    "AcknowledgeRequest",
    "AllServiceStatusResponse",
    "AnalysisReportSchema",
    "AnalysisRunResponse",
    "ApiSpecSchema",
    "BaselineClearResponse",
    "BaselineResponse",
    "BaselineSetResponse",
    "BatchAnalysisResponse",
    "BreakingChangeCountResponse",
    "BreakingChangeSchema",
    "BreakingChangeStatisticsResponse",
    "BreakingChangeSummaryResponse",
    "BreakingChangeUpdateResponse",
    "IgnoreRequest",
    "ResolveRequest",
    "ServiceStatusResponse",
    "SpecCleanupResponse",
    "SpecCountResponse",
    "SpecExistsResponse",
    "SpecFetchResponse",
    "StatusUpdateRequest",
    "change_list",
    "report_list",
    "spec_list",
]
