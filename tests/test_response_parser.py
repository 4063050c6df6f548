import json
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from insta_lens.analyzers.llm_client import LLMResponse
from insta_lens.analyzers.response_parser import (
    error_analysis,
    narrative_text,
    parse_analysis,
    parse_profile_analysis,
)
from insta_lens.analyzers.schema import AnalysisResult
from insta_lens.models import Post

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

VALID_ANALYSIS = {
    "analysis_metadata": {"timestamp_utc": "2024-05-01T12:00:00Z", "model_used": "gemini-2.0-flash", "analysis_version": "1.0"},
    "profile_context": {"username": "alice", "biography_text": "Photographer", "follower_count": "1,520"},
    "initial_profile_analysis": {
        "profile_overview": "A photographer.",
        "sentiment_analysis": {"label": "Positive", "score": "0.7"},
        "key_information": ["Berlin"],
    },
    "forensic_analysis": {"pii_indicators": ["email pattern"], "external_connections": {"usernames": ["@bob"]}},
    "account_authenticity": {"assessment": "Likely genuine", "indicators": {"positive": ["verified"]}},
    "entity_extraction": {"hashtags": ["#berlin"], "mentions": "@bob"},
    "inferred_analysis": {
        "potential_interests": [
            {"interest": "travel", "reasoning": "captions", "confidence": "high"},
            {"interest": "food", "confidence": 0.5},
            {"interest": "art", "confidence": 0.1},
            "not an object",
        ],
    },
    "network_graph_data": {
        "nodes": [{"id": "profile_owner", "label": "alice", "type": "ProfileOwner"}],
        "edges": [{"source": "profile_owner", "target": "bob", "label": "mentions"}],
    },
    "visualization_data": {"posting_heatmap": [{"day": 1, "hour": 9, "count": 2}]},
}

GARBAGE_OUTPUTS = [
    "",
    "   ",
    "Sorry, I cannot help with that.",
    '{"analysis_metadata": {"timestamp_utc": "2024',
    "[1, 2, 3]",
    '"just a string"',
    "null",
    "42",
    "LLM_ERROR: TimeoutError: request timed out",
    "{" * 5000,
    '{"initial_profile_analysis": "oops", "visualization_data": [], "temporal_analysis": 7}',
]

LIST_PATHS = [
    ("initial_profile_analysis", "key_information"),
    ("initial_profile_analysis", "potential_interests"),
    ("forensic_analysis", "pii_indicators"),
    ("forensic_analysis", "keywords_of_interest"),
    ("account_authenticity", "recommendations"),
    ("entity_extraction", "hashtags"),
    ("inferred_analysis", "potential_skills"),
    ("network_graph_data", "edges"),
    ("visualization_data", "topic_distribution"),
]


def _assert_structurally_valid(result: AnalysisResult) -> None:
    assert isinstance(result, AnalysisResult)
    for section, field in LIST_PATHS:
        assert isinstance(getattr(getattr(result, section), field), list)
    assert isinstance(result.initial_profile_analysis.profile_overview, str)
    assert isinstance(result.analysis_metadata.analysis_version, str)


# ── never raises ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize("raw", GARBAGE_OUTPUTS)
def test_garbage_never_raises(raw):
    result = parse_analysis(raw, username="alice", timestamp=NOW)
    _assert_structurally_valid(result)


def test_prose_gives_error_result():
    """Scenario: model answers in prose instead of JSON."""
    result = parse_analysis("Sorry, I cannot help with that.", username="alice", biography="bio", model="m", timestamp=NOW)
    assert result.is_error
    assert result.analysis_metadata.analysis_version == "error"
    assert result.analysis_metadata.model_used == "m"
    assert result.analysis_metadata.timestamp_utc == "2024-05-01T12:00:00Z"
    assert result.initial_profile_analysis.profile_overview.startswith("Error analyzing profile: ")
    assert result.initial_profile_analysis.sentiment_analysis.label == "Error"
    assert result.account_authenticity.assessment == "Error during analysis"
    assert result.profile_context.username == "alice"
    assert result.profile_context.biography_text == "bio"
    assert result.network_graph_data.nodes[0].id == "profile_owner"
    assert result.forensic_analysis.pii_indicators == []


def test_sentinel_string_gives_error_result():
    result = parse_analysis("LLM_ERROR: TimeoutError: request timed out", username="alice")
    assert result.is_error
    assert "LLM_ERROR: TimeoutError" in result.initial_profile_analysis.profile_overview


def test_failed_llm_response_gives_error_result():
    failure = LLMResponse.failure("APIError", "bad gateway", model="gemini-2.0-flash")
    result = parse_analysis(failure, username="alice", model="gemini-2.0-flash")
    assert result.is_error
    assert "LLM_ERROR: APIError: bad gateway" in result.initial_profile_analysis.profile_overview


def test_non_string_input_gives_error_result():
    assert parse_analysis(None, username="alice").is_error


# ── valid output ─────────────────────────────────────────────────────────────

def test_valid_json_parses():
    result = parse_analysis(LLMResponse(text=json.dumps(VALID_ANALYSIS), model="gemini-2.0-flash"), username="alice")
    assert not result.is_error
    assert result.analysis_metadata.analysis_version == "1.0"
    assert result.initial_profile_analysis.sentiment_analysis.score == pytest.approx(0.7)
    assert result.profile_context.follower_count == 1520
    assert result.entity_extraction.mentions == ["@bob"]
    assert result.forensic_analysis.external_connections.usernames == ["@bob"]
    assert result.network_graph_data.edges[0].target == "bob"


def test_confidence_coercion_and_non_object_items_dropped():
    result = parse_analysis(json.dumps(VALID_ANALYSIS), username="alice")
    interests = result.inferred_analysis.potential_interests
    assert [(i.interest, i.confidence) for i in interests] == [
        ("travel", "High"), ("food", "Medium"), ("art", "Low"),
    ]


def test_nulls_become_empty_defaults():
    raw = json.dumps({
        "initial_profile_analysis": {"profile_overview": None, "key_information": None},
        "forensic_analysis": None,
        "entity_extraction": {"urls": None, "emails": [None, "a@b.c"]},
        "inferred_analysis": {"potential_skills": [{"skill": "python", "confidence": None}]},
    })
    result = parse_analysis(raw, username="alice")
    assert not result.is_error
    assert result.initial_profile_analysis.profile_overview == ""
    assert result.initial_profile_analysis.key_information == []
    assert result.forensic_analysis.pii_indicators == []
    assert result.entity_extraction.urls == []
    assert result.entity_extraction.emails == ["a@b.c"]
    assert result.inferred_analysis.potential_skills[0].confidence == "Low"


def test_optional_sections_stay_absent():
    result = parse_analysis(json.dumps({"analysis_metadata": {"analysis_version": "1.0"}}), username="alice")
    assert result.temporal_analysis is None
    assert result.content_analysis is None


def test_unknown_keys_are_kept():
    result = parse_analysis(json.dumps({"extra_section": {"x": 1}}), username="alice")
    assert result.model_dump()["extra_section"] == {"x": 1}


def test_loose_numbers_in_visualisation():
    raw = json.dumps({"visualization_data": {
        "posting_heatmap": [{"day": "2", "hour": 10.0, "count": 3.7}],
        "topic_distribution": [{"topic": "travel", "count": "n/a"}],
    }})
    result = parse_analysis(raw, username="alice")
    cell = result.visualization_data.posting_heatmap[0]
    assert (cell.day, cell.hour, cell.count) == (2, 10, 3)
    assert result.visualization_data.topic_distribution[0].count == 0


# ── heatmap fill ─────────────────────────────────────────────────────────────

def test_empty_heatmap_filled_from_posts():
    # 2023-11-14 22:13:20 UTC is a Tuesday
    posts = [Post(id="a", timestamp=1700000000), Post(id="b", timestamp=1700000000 + 60)]
    result = parse_analysis(json.dumps({"visualization_data": {}}), username="alice", posts=posts)
    cells = [(c.day, c.hour, c.count) for c in result.visualization_data.posting_heatmap]
    assert cells == [(2, 22, 2)]


def test_model_heatmap_is_kept(profile):
    result = parse_profile_analysis(json.dumps(VALID_ANALYSIS), profile)
    cells = [(c.day, c.hour, c.count) for c in result.visualization_data.posting_heatmap]
    assert cells == [(1, 9, 2)]


def test_parse_profile_analysis_uses_profile_context(profile):
    result = parse_profile_analysis("not json", profile, model="m")
    assert result.is_error
    assert result.profile_context.username == "alice"
    assert result.profile_context.biography_text == profile.biography


# ── helpers ──────────────────────────────────────────────────────────────────

def test_error_analysis_round_trips_through_json():
    result = error_analysis("boom", username="alice", timestamp=NOW)
    again = AnalysisResult.model_validate_json(result.model_dump_json())
    assert again.is_error
    assert again == result


def test_narrative_text():
    assert narrative_text(LLMResponse(text="Report body"), "report") == "Report body"
    failure = LLMResponse.failure("TimeoutError", "slow")
    assert narrative_text(failure, "forensic notes") == "Failed to generate forensic notes: LLM_ERROR: TimeoutError: slow"


# ── numeric edge cases ───────────────────────────────────────────────────────

HUGE_INT = "9" * 400


def test_huge_score_does_not_raise():
    raw = '{"initial_profile_analysis": {"sentiment_analysis": {"score": %s}}}' % HUGE_INT
    result = parse_analysis(raw, username="alice")
    assert not result.is_error
    assert result.initial_profile_analysis.sentiment_analysis.score == 0.0


def test_huge_weight_and_count_do_not_raise():
    raw = (
        '{"visualization_data": {"mention_network": {"nodes": [{"id": "bob", "weight": %s}]},'
        ' "topic_distribution": [{"topic": "x", "count": %s}]}}' % (HUGE_INT, HUGE_INT)
    )
    result = parse_analysis(raw, username="alice")
    assert result.visualization_data.mention_network.nodes[0].weight == 0.0
    assert result.visualization_data.topic_distribution[0].count == 0


def test_unexpected_validator_failure_gives_error_result():
    real = AnalysisResult.model_validate
    calls = []

    def flaky(data, *args, **kwargs):
        if not calls:
            calls.append(data)
            raise RuntimeError("validator bug")
        return real(data, *args, **kwargs)

    with patch.object(AnalysisResult, "model_validate", side_effect=flaky):
        result = parse_analysis(json.dumps(VALID_ANALYSIS), username="alice")

    assert result.is_error
    assert "RuntimeError: validator bug" in result.initial_profile_analysis.profile_overview


def test_out_of_range_post_timestamps_skip_heatmap():
    posts = [Post(id="a", timestamp=10**14), Post(id="b", timestamp=1700000000)]
    result = parse_analysis(json.dumps({}), username="alice", posts=posts)
    cells = [(c.day, c.hour, c.count) for c in result.visualization_data.posting_heatmap]
    assert cells == [(2, 22, 1)]
