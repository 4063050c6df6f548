"""Turn raw LLM output into an AnalysisResult.

``parse_analysis`` is the pipeline's last line of defence: whatever it is
given (a failed LLMResponse, an ``LLM_ERROR`` string, prose, truncated JSON)
it returns a structurally valid AnalysisResult and never raises.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Sequence

from pydantic import ValidationError

from insta_lens.analyzers.llm_client import SENTINEL_PREFIX, LLMResponse
from insta_lens.analyzers.schema import ERROR_VERSION, AnalysisResult, HeatmapCell
from insta_lens.models import Post, Profile
from insta_lens.utils.patterns import posting_heatmap

_log = logging.getLogger(__name__)


def _timestamp_text(timestamp: datetime | None) -> str:
    ts = timestamp or datetime.now(timezone.utc)
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def error_analysis(
    message: str,
    *,
    username: str,
    biography: str = "",
    model: str = "",
    timestamp: datetime | None = None,
) -> AnalysisResult:
    """Fallback result: error text in the narrative fields, every list empty."""
    return AnalysisResult.model_validate({
        "analysis_metadata": {
            "timestamp_utc": _timestamp_text(timestamp),
            "model_used": model,
            "analysis_version": ERROR_VERSION,
        },
        "profile_context": {"username": username, "biography_text": biography},
        "initial_profile_analysis": {
            "profile_overview": f"Error analyzing profile: {message}",
            "sentiment_analysis": {"label": "Error", "score": 0},
        },
        "account_authenticity": {"assessment": "Error during analysis"},
        "network_graph_data": {
            "nodes": [{"id": "profile_owner", "label": username, "type": "ProfileOwner"}],
            "edges": [],
        },
    })


def _decode(raw: str) -> dict:
    """json.loads that insists on an object. Raises ValueError otherwise."""
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def parse_analysis(
    raw: str | LLMResponse,
    *,
    username: str,
    biography: str = "",
    model: str = "",
    timestamp: datetime | None = None,
    posts: Sequence[Post] | None = None,
) -> AnalysisResult:
    """Parse the comprehensive-prompt output into an AnalysisResult.

    When ``posts`` are given and the model left ``posting_heatmap`` empty,
    the heatmap is computed locally from the post timestamps.
    """
    fallback = dict(username=username, biography=biography, model=model, timestamp=timestamp)

    if isinstance(raw, LLMResponse):
        if not raw.ok:
            _log.error("analysis generation failed: %s", raw.sentinel)
            return error_analysis(raw.sentinel, **fallback)
        model = model or raw.model
        fallback["model"] = model
        raw = raw.text

    if not isinstance(raw, str):
        return error_analysis(f"unexpected LLM output type {type(raw).__name__}", **fallback)
    if raw.startswith(SENTINEL_PREFIX):
        _log.error("analysis generation failed: %s", raw)
        return error_analysis(raw, **fallback)

    try:
        data = _decode(raw)
    except (ValueError, RecursionError) as exc:
        # json.JSONDecodeError is a ValueError subclass
        _log.error("could not parse analysis JSON for %s: %s", username, exc)
        return error_analysis(str(exc), **fallback)

    try:
        result = AnalysisResult.model_validate(data)
    except ValidationError as exc:
        _log.error("analysis JSON for %s does not fit the schema: %s", username, exc)
        return error_analysis(str(exc), **fallback)
    except Exception as exc:
        # Validators run on untrusted model output; any failure becomes the error result.
        _log.error("analysis validation crashed for %s: %s: %s", username, type(exc).__name__, exc)
        return error_analysis(f"{type(exc).__name__}: {exc}", **fallback)

    if posts and not result.visualization_data.posting_heatmap:
        result.visualization_data.posting_heatmap = [
            HeatmapCell.model_validate(cell) for cell in posting_heatmap(posts)
        ]

    _log.info("analysis parsed for %s (version %s)", username, result.analysis_metadata.analysis_version)
    return result


def parse_profile_analysis(raw: str | LLMResponse, profile: Profile, *, model: str = "", timestamp: datetime | None = None) -> AnalysisResult:
    """``parse_analysis`` with context taken from a fetched Profile."""
    return parse_analysis(
        raw,
        username=profile.username,
        biography=profile.biography or "",
        model=model,
        timestamp=timestamp,
        posts=profile.posts,
    )


def narrative_text(response: LLMResponse, label: str) -> str:
    """Plain-text prompt result, or a readable failure line for the same slot."""
    if not response.ok:
        _log.error("%s generation failed: %s", label, response.sentinel)
        return f"Failed to generate {label}: {response.sentinel}"
    _log.info("%s generation successful", label)
    return response.text
