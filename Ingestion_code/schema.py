# schema.py
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator


class RawFile(BaseModel):
    name: str
    content_type: str = ""
    data: bytes = b""
    last_modified: Optional[float] = None

    @property
    def size(self) -> int:
        return len(self.data)


class ContentType(str, Enum):
    CSV = "csv"
    IMAGE = "image"
    TXT = "txt"


class ExtractedContent(BaseModel):
    type: ContentType
    content: str
    metadata: Dict[str, Any] = {}


class OcrResult(BaseModel):
    text: str = ""
    confidence: float = 0.0   # percent, 0-100


class CompanyInfo(BaseModel):
    name: Optional[str] = None
    industry_name: Optional[str] = None
    sub_industry_name: Optional[str] = None
    country: Optional[str] = None
    geo_region: Optional[str] = None
    startup_stage: Optional[str] = None
    valuation_target_usd: Optional[float] = None
    funding_goal_usd: Optional[float] = None
    incorporation_year: Optional[int] = None
    pitch_deck_summary: Optional[str] = None


class Founder(BaseModel):
    full_name: Optional[str] = None
    linkedin_url: Optional[str] = None
    education_history: Optional[List[str]] = None
    domain_experience_yrs: Optional[float] = None
    technical_skills: Optional[List[str]] = None
    notable_achievements: Optional[str] = None


class PitchDeck(BaseModel):
    core_problem: Optional[str] = None
    core_solution: Optional[str] = None
    customer_segment: Optional[str] = None
    product_summary_md: Optional[str] = None


class FinancialModel(BaseModel):
    monthly_revenue_usd: Optional[float] = None
    burn_rate_usd: Optional[float] = None
    ltv_cac_ratio: Optional[float] = None
    runway_months: Optional[float] = None
    revenue_model_notes: Optional[str] = None


class GoToMarket(BaseModel):
    gtm_channels: Optional[List[str]] = None
    gtm_notes_md: Optional[str] = None


class Metric(BaseModel):
    metric_name: Optional[str] = None
    metric_value: Optional[float] = None
    metric_unit: Optional[str] = None


class StartupAnalysis(BaseModel):
    company: Optional[CompanyInfo] = None
    founders: List[Founder] = []
    pitch_deck: Optional[PitchDeck] = None
    financial_model: Optional[FinancialModel] = None
    go_to_market: Optional[GoToMarket] = None
    metrics: List[Metric] = []
    vc_fit_report: Optional[Any] = None

    @field_validator("founders", "metrics", mode="before")
    @classmethod
    def _null_list(cls, v):
        return [] if v is None else v


def has_fields(record: Optional[BaseModel]) -> bool:
    """True when a sub-record carries at least one non-empty field."""
    if record is None:
        return False
    return any(v not in (None, "", []) for v in record.model_dump().values())


def is_empty_analysis(analysis: StartupAnalysis) -> bool:
    """
    An analysis is empty when nothing in it is worth persisting.

    A company only counts when it has a name or a pitch summary; the
    other sub-records count as soon as any of their fields is set.
    """
    company = analysis.company
    if company is not None and (company.name or company.pitch_deck_summary):
        return False
    if analysis.founders or analysis.metrics:
        return False
    if analysis.vc_fit_report:
        return False
    return not (
        has_fields(analysis.pitch_deck)
        or has_fields(analysis.financial_model)
        or has_fields(analysis.go_to_market)
    )


class PersistenceResult(BaseModel):
    company_id: Optional[str] = None
    inserted_tables: List[str] = []
    errors: List[str] = []

    @computed_field
    @property
    def success(self) -> bool:
        return bool(self.inserted_tables)


class IngestionQueueRecord(BaseModel):
    file_url: str
    input_type: str
    company_id: Optional[str] = None
    status: str = "processed"
    parsed_json: Dict[str, Any] = {}
    raw_text: str = ""


class FeatureLimit(BaseModel):
    allowed: bool = False
    current_usage: int = 0
    limit_value: int = 0
    unlimited: bool = False


class UploadStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    SAVING = "saving"
    UPLOADING = "uploading"
    SUCCESS = "success"
    BUCKET_ERROR = "bucket_error"
    ERROR = "error"


class UploadOutcome(BaseModel):
    file_name: str
    status: UploadStatus = UploadStatus.IDLE
    message: str = ""
    notices: List[str] = []
    extracted: Optional[ExtractedContent] = None
    analysis: Optional[StartupAnalysis] = None
    used_fallback: bool = False
    ai_error: Optional[str] = None
    db_result: Optional[PersistenceResult] = None
    file_url: Optional[str] = None
    usage_tracked: bool = False
    history: List[UploadStatus] = Field(default_factory=list)
