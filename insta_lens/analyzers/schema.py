"""Canonical, versioned AnalysisResult schema.

LLM output is loosely typed, so every section normalises its own input:
nulls fall back to defaults, scalar strings in list slots are wrapped,
non-object list items are dropped and confidence values are folded into
Low/Medium/High. Renderers can rely on every list being a list.
"""
import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

SCHEMA_VERSION = "1.0"
ERROR_VERSION = "error"

Confidence = Literal["Low", "Medium", "High"]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return [_as_text(value)]
    return [_as_text(v) for v in value if v is not None]


def _as_object_list(value: Any) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _as_optional_bool(value: Any) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
        return None
    if isinstance(value, (int, float)):
        return bool(value)
    return None


def _as_optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _as_confidence(value: Any) -> str:
    if isinstance(value, bool):
        return "Low"
    if isinstance(value, (int, float)):
        if value < 0.34:
            return "Low"
        if value < 0.67:
            return "Medium"
        return "High"
    if isinstance(value, str):
        label = value.strip().capitalize()
        if label in ("Low", "Medium", "High"):
            return label
        try:
            return _as_confidence(float(label))
        except ValueError:
            return "Low"
    return "Low"


Text = Annotated[str, BeforeValidator(_as_text)]
StrList = Annotated[list[str], BeforeValidator(_as_str_list)]
Score = Annotated[float, BeforeValidator(_as_float)]
Count = Annotated[int, BeforeValidator(_as_int)]
OptInt = Annotated[int | None, BeforeValidator(_as_optional_int)]
OptBool = Annotated[bool | None, BeforeValidator(_as_optional_bool)]
ConfidenceLabel = Annotated[Confidence, BeforeValidator(_as_confidence)]


def ObjList(item: type) -> Any:
    return Annotated[list[item], BeforeValidator(_as_object_list)]


class _Section(BaseModel):
    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if v is not None}


# ── metadata / context ───────────────────────────────────────────────────────

class AnalysisMetadata(_Section):
    timestamp_utc: Text = ""
    model_used: Text = ""
    analysis_version: Text = SCHEMA_VERSION


class ProfileContext(_Section):
    username: Text = ""
    biography_text: Text = ""
    fullname: Text = ""
    follower_count: OptInt = None
    following_count: OptInt = None
    is_verified: OptBool = None


# ── core sections ────────────────────────────────────────────────────────────

class SentimentAnalysis(_Section):
    label: Text = ""
    score: Score = 0.0


class InitialProfileAnalysis(_Section):
    profile_overview: Text = ""
    biography_summary: Text = ""
    sentiment_analysis: SentimentAnalysis = Field(default_factory=SentimentAnalysis)
    key_information: StrList = Field(default_factory=list)
    potential_interests: StrList = Field(default_factory=list)


class ExternalConnections(_Section):
    usernames: StrList = Field(default_factory=list)
    urls: StrList = Field(default_factory=list)


class ForensicAnalysis(_Section):
    pii_indicators: StrList = Field(default_factory=list)
    mentioned_locations: StrList = Field(default_factory=list)
    external_connections: ExternalConnections = Field(default_factory=ExternalConnections)
    keywords_of_interest: StrList = Field(default_factory=list)
    language_notes: Text = ""


class AuthenticityIndicators(_Section):
    positive: StrList = Field(default_factory=list)
    negative: StrList = Field(default_factory=list)
    neutral: StrList = Field(default_factory=list)


class AccountAuthenticity(_Section):
    assessment: Text = ""
    indicators: AuthenticityIndicators = Field(default_factory=AuthenticityIndicators)
    recommendations: StrList = Field(default_factory=list)


class EntityExtraction(_Section):
    mentions: StrList = Field(default_factory=list)
    hashtags: StrList = Field(default_factory=list)
    urls: StrList = Field(default_factory=list)
    emails: StrList = Field(default_factory=list)
    phone_numbers: StrList = Field(default_factory=list)
    locations: StrList = Field(default_factory=list)
    organizations: StrList = Field(default_factory=list)
    persons: StrList = Field(default_factory=list)
    technologies_tools: StrList = Field(default_factory=list)
    projects_products: StrList = Field(default_factory=list)


# ── optional post-derived sections ───────────────────────────────────────────

class SummaryPatterns(_Section):
    summary: Text = ""
    patterns: StrList = Field(default_factory=list)


class TemporalAnalysis(_Section):
    posting_frequency: SummaryPatterns = Field(default_factory=SummaryPatterns)
    time_of_day_patterns: SummaryPatterns = Field(default_factory=SummaryPatterns)
    seasonal_variations: StrList = Field(default_factory=list)
    gaps_or_spikes: StrList = Field(default_factory=list)
    evolution_over_time: Text = ""
    anomalies: StrList = Field(default_factory=list)


class SentimentEvolution(_Section):
    summary: Text = ""
    trends: StrList = Field(default_factory=list)


class AutomatedVsHuman(_Section):
    assessment: Text = ""
    indicators: StrList = Field(default_factory=list)


class PostAnalysis(_Section):
    timestamp: Text = ""
    summary: Text = ""
    key_observations: StrList = Field(default_factory=list)
    sentiment: Text = ""
    themes: StrList = Field(default_factory=list)


class ContentAnalysis(_Section):
    dominant_themes: StrList = Field(default_factory=list)
    linguistic_style: SummaryPatterns = Field(default_factory=SummaryPatterns)
    hashtag_strategy: Text = ""
    mention_patterns: StrList = Field(default_factory=list)
    sentiment_evolution: SentimentEvolution = Field(default_factory=SentimentEvolution)
    content_evolution: Text = ""
    automated_vs_human: AutomatedVsHuman = Field(default_factory=AutomatedVsHuman)
    concerning_content: StrList = Field(default_factory=list)
    post_analyses: ObjList(PostAnalysis) = Field(default_factory=list)


# ── speculative inferences ───────────────────────────────────────────────────

class _Inference(_Section):
    reasoning: Text = ""
    confidence: ConfidenceLabel = "Low"


class InferredInterest(_Inference):
    interest: Text = ""


class InferredAffiliation(_Inference):
    affiliation: Text = ""


class InferredSkill(_Inference):
    skill: Text = ""


class InferredLocation(_Inference):
    location: Text = ""


class InferredAnalysis(_Section):
    potential_interests: ObjList(InferredInterest) = Field(default_factory=list)
    potential_affiliations: ObjList(InferredAffiliation) = Field(default_factory=list)
    potential_skills: ObjList(InferredSkill) = Field(default_factory=list)
    potential_locations: ObjList(InferredLocation) = Field(default_factory=list)


# ── graph / visualisation ────────────────────────────────────────────────────

class GraphNode(_Section):
    id: Text = ""
    label: Text = ""
    type: Text = ""


class GraphEdge(_Section):
    source: Text = ""
    target: Text = ""
    label: Text = ""


class NetworkGraphData(_Section):
    nodes: ObjList(GraphNode) = Field(default_factory=list)
    edges: ObjList(GraphEdge) = Field(default_factory=list)


class HeatmapCell(_Section):
    day: Count = 0   # 0 = Sunday
    hour: Count = 0  # UTC
    count: Count = 0


class SentimentPoint(_Section):
    timestamp: Score = 0.0
    sentiment: Score = 0.0


class TopicCount(_Section):
    topic: Text = ""
    count: Count = 0


class WeightedNode(_Section):
    id: Text = ""
    label: Text = ""
    weight: Score = 0.0


class WeightedEdge(_Section):
    source: Text = ""
    target: Text = ""
    weight: Score = 0.0


class MentionNetwork(_Section):
    nodes: ObjList(WeightedNode) = Field(default_factory=list)
    edges: ObjList(WeightedEdge) = Field(default_factory=list)


class VisualizationData(_Section):
    posting_heatmap: ObjList(HeatmapCell) = Field(default_factory=list)
    sentiment_timeline: ObjList(SentimentPoint) = Field(default_factory=list)
    topic_distribution: ObjList(TopicCount) = Field(default_factory=list)
    mention_network: MentionNetwork = Field(default_factory=MentionNetwork)


# ── top level ────────────────────────────────────────────────────────────────

class AnalysisResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    analysis_metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)
    profile_context: ProfileContext = Field(default_factory=ProfileContext)
    initial_profile_analysis: InitialProfileAnalysis = Field(default_factory=InitialProfileAnalysis)
    forensic_analysis: ForensicAnalysis = Field(default_factory=ForensicAnalysis)
    account_authenticity: AccountAuthenticity = Field(default_factory=AccountAuthenticity)
    entity_extraction: EntityExtraction = Field(default_factory=EntityExtraction)
    temporal_analysis: TemporalAnalysis | None = None
    content_analysis: ContentAnalysis | None = None
    inferred_analysis: InferredAnalysis = Field(default_factory=InferredAnalysis)
    network_graph_data: NetworkGraphData = Field(default_factory=NetworkGraphData)
    visualization_data: VisualizationData = Field(default_factory=VisualizationData)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @property
    def is_error(self) -> bool:
        return self.analysis_metadata.analysis_version == ERROR_VERSION
