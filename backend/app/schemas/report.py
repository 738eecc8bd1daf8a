"""Pydantic schemas for reports."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.enums import (
    IssueType,
    ReportStatus,
    SafetyRisk,
    Severity,
    TrafficImpact,
    VoteDirection,
)
from app.models.report import Report


class Coordinates(BaseModel):
    """Geographic coordinates."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Location(BaseModel):
    """Street address plus coordinates."""

    address: str = Field(..., min_length=5, max_length=200)
    coordinates: Coordinates
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None

    @field_validator("address")
    @classmethod
    def strip_address(cls, value: str) -> str:
        return value.strip()


class ImageRef(BaseModel):
    """Stored image reference (upload happens outside this service)."""

    url: str
    public_id: str
    uploaded_at: datetime | None = None


class ImageAnalysisDetails(BaseModel):
    size: str | None = None
    location: str | None = None
    traffic_impact: TrafficImpact | None = None
    safety_risk: SafetyRisk | None = None


class ImageAnalysis(BaseModel):
    """Result of the AI image classifier."""

    issue_type: IssueType
    severity: Severity
    confidence: float = Field(..., ge=0, le=1)
    description: str | None = None
    details: ImageAnalysisDetails = Field(default_factory=ImageAnalysisDetails)


class ImageAnalysisResponse(BaseModel):
    analysis: ImageAnalysis | None = None
    message: str


def _stripped_description(value: str) -> str:
    value = value.strip()
    if len(value) < 10:
        raise ValueError("Description must be at least 10 characters")
    return value


class ReportCreate(BaseModel):
    """Submitter input for a new report.

    `type` and `severity` may be omitted when `ai_analysis` is supplied; the
    analysis only fills what the submitter left blank.
    """

    type: IssueType | None = None
    severity: Severity | None = None
    location: Location
    description: str = Field(..., min_length=10, max_length=1000)
    images: list[ImageRef] = Field(default_factory=list, max_length=5)
    tags: list[str] = Field(default_factory=list)
    traffic_impact: TrafficImpact = TrafficImpact.NONE
    safety_risk: SafetyRisk = SafetyRisk.LOW
    estimated_cost: float | None = Field(None, ge=0)
    ai_analysis: ImageAnalysis | None = None

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: str) -> str:
        return _stripped_description(value)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, value: list[str]) -> list[str]:
        return [tag.strip().lower() for tag in value if tag.strip()]


class ReportUpdate(BaseModel):
    """Editable fields for the owner or an operator. Status is not editable here."""

    type: IssueType | None = None
    severity: Severity | None = None
    location: Location | None = None
    description: str | None = Field(None, min_length=10, max_length=1000)
    tags: list[str] | None = None
    traffic_impact: TrafficImpact | None = None
    safety_risk: SafetyRisk | None = None

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _stripped_description(value)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return [tag.strip().lower() for tag in value if tag.strip()]


class VoteIn(BaseModel):
    vote: VoteDirection

    @field_validator("vote", mode="before")
    @classmethod
    def accept_legacy_names(cls, value):
        if isinstance(value, str) and value.lower() in ("upvote", "downvote"):
            return value.lower()[: -len("vote")]
        return value


class StatusUpdate(BaseModel):
    status: ReportStatus
    notes: str | None = Field(None, max_length=1000)


class NoteIn(BaseModel):
    note: str = Field(..., min_length=5, max_length=500)

    @field_validator("note")
    @classmethod
    def strip_note(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 5:
            raise ValueError("Note must be at least 5 characters")
        return value


class ContractorIn(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    phone: str | None = None
    email: str | None = None
    estimated_completion: datetime | None = None


class ContractorOut(BaseModel):
    name: str
    phone: str | None = None
    email: str | None = None
    assigned_at: datetime | None = None
    assigned_by: str | None = None
    estimated_completion: datetime | None = None


class LinkDuplicatesIn(BaseModel):
    duplicate_ids: list[str] = Field(..., min_length=1, max_length=50)


class DuplicateLinkOut(BaseModel):
    report_id: str
    linked_at: datetime


class VerificationOut(BaseModel):
    verifier_id: str | None
    timestamp: datetime
    notes: str | None = None


class ResolutionOut(BaseModel):
    resolver_id: str | None
    timestamp: datetime
    notes: str | None = None


class VoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    direction: VoteDirection
    created_at: datetime


class NoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    note: str
    author_id: str
    created_at: datetime


class ReportOut(BaseModel):
    """Report response schema (also the payload of report:new / report:status)."""

    id: str
    reporter_id: str
    type: IssueType
    severity: Severity
    status: ReportStatus
    location: Location
    description: str
    images: list[ImageRef] = []
    tags: list[str] = []
    traffic_impact: TrafficImpact
    safety_risk: SafetyRisk
    priority: int
    estimated_cost: float | None = None

    upvotes: int = 0
    downvotes: int = 0
    vote_count: int = 0
    votes: list[VoteOut] = []
    admin_notes: list[NoteOut] = []
    duplicates: list[DuplicateLinkOut] = []

    contractor: ContractorOut | None = None
    verification: VerificationOut | None = None
    resolution: ResolutionOut | None = None
    ai_analysis: ImageAnalysis | None = None

    is_urgent: bool = False
    age_in_days: int = 0
    created_at: datetime
    updated_at: datetime

    weather: dict | None = None
    # Only set by location queries
    distance_m: float | None = None

    @classmethod
    def from_model(cls, report: Report) -> "ReportOut":
        contractor = None
        if report.contractor_name:
            contractor = ContractorOut(
                name=report.contractor_name,
                phone=report.contractor_phone,
                email=report.contractor_email,
                assigned_at=report.contractor_assigned_at,
                assigned_by=report.contractor_assigned_by,
                estimated_completion=report.contractor_estimated_completion,
            )

        verification = None
        if report.verified_at is not None:
            verification = VerificationOut(
                verifier_id=report.verified_by,
                timestamp=report.verified_at,
                notes=report.verification_notes,
            )

        resolution = None
        if report.resolved_at is not None:
            resolution = ResolutionOut(
                resolver_id=report.resolved_by,
                timestamp=report.resolved_at,
                notes=report.resolution_notes,
            )

        return cls(
            id=report.id,
            reporter_id=report.reporter_id,
            type=report.type,
            severity=report.severity,
            status=report.status,
            location=Location(
                address=report.address,
                coordinates=Coordinates(latitude=report.latitude, longitude=report.longitude),
                city=report.city,
                state=report.state,
                zip_code=report.zip_code,
            ),
            description=report.description,
            images=report.images or [],
            tags=report.tags or [],
            traffic_impact=report.traffic_impact,
            safety_risk=report.safety_risk,
            priority=report.priority,
            estimated_cost=report.estimated_cost,
            upvotes=report.upvotes,
            downvotes=report.downvotes,
            vote_count=report.vote_count,
            votes=[VoteOut.model_validate(v) for v in report.votes],
            admin_notes=[NoteOut.model_validate(n) for n in report.notes],
            duplicates=[DuplicateLinkOut.model_validate(d) for d in report.duplicate_links or []],
            contractor=contractor,
            verification=verification,
            resolution=resolution,
            ai_analysis=report.ai_analysis,
            is_urgent=report.is_urgent,
            age_in_days=report.age_in_days,
            created_at=report.created_at,
            updated_at=report.updated_at,
        )


class ReportsResponse(BaseModel):
    """Paginated response for reports."""

    reports: list[ReportOut]
    next_cursor: str | None = None
    total: int | None = None


class ReportFilters(BaseModel):
    """Filters for listing reports."""

    type: IssueType | None = None
    status: ReportStatus | None = None
    severity: Severity | None = None
    reporter_id: str | None = None
    since: datetime | None = None
    until: datetime | None = None
    q: str | None = None
