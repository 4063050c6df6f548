"""Prompt builders for the profile analysis LLM calls.

Pure functions: no network, no clock unless ``timestamp`` is omitted.
Narrative prompts ask for plain text; the comprehensive prompt asks for one
JSON object matching ``insta_lens.analyzers.schema.AnalysisResult``.
"""
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Sequence

from insta_lens.analyzers.schema import SCHEMA_VERSION
from insta_lens.models import Post, Profile
from insta_lens.utils.patterns import compute_posting_patterns, to_utc

MAX_SAMPLE_TIMESTAMPS = 50
NO_POSTS_TEXT = "No posts data available for analysis."


class PromptKind(str, Enum):
    REPORT = "report"
    FORENSIC = "forensic"
    AUTHENTICITY = "authenticity"
    TEMPORAL = "temporal"
    COMPREHENSIVE = "comprehensive"


# (max_tokens, temperature) per prompt kind
PROMPT_PARAMS: dict[PromptKind, tuple[int, float]] = {
    PromptKind.REPORT: (1000, 0.5),
    PromptKind.FORENSIC: (1000, 0.4),
    PromptKind.AUTHENTICITY: (1000, 0.4),
    PromptKind.TEMPORAL: (1000, 0.4),
    PromptKind.COMPREHENSIVE: (6000, 0.3),
}

PLAIN_TEXT_RULE = (
    "Generate ONLY plain text. Do NOT use any markdown formatting "
    "(no asterisks, no hashes, no markdown lists). Use simple line breaks and "
    '"- item" lists for structure.'
)

JSON_ONLY_RULES = """IMPORTANT NOTES:
- Your entire response must be ONLY a valid, parseable JSON object. No explanatory text before or after. No markdown formatting or code fences.
- Use numeric values for scores and counts (not strings).
- Use empty arrays [] rather than null for missing list data.
- Use empty strings "" rather than null for missing text fields.
- confidence must be exactly one of "Low", "Medium", "High"."""


def escape_json_string(text: str | None) -> str:
    """Quote ``text`` as a JSON string literal, safe to embed in a JSON skeleton."""
    return json.dumps(text or "", ensure_ascii=False)


def iso_utc(ts: int | float) -> str:
    dt = to_utc(ts)
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ") if dt else "unknown"


def _utc_now_text(timestamp: datetime | None) -> str:
    ts = timestamp or datetime.now(timezone.utc)
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _sorted(posts: Sequence[Post] | None) -> list[Post]:
    return sorted(posts or [], key=lambda p: p.timestamp)


# ── narrative prompts ────────────────────────────────────────────────────────

def _report_prompt(profile: Profile) -> str:
    username = profile.username
    return f"""
**Task:** Generate an "Initial Profile Reconnaissance" report based *only* on the provided Instagram biography text and username context.

**Username Context:** Analyze potential implications of the username ({username}) itself if relevant.
**Biography Text (JSON-escaped):** {escape_json_string(profile.biography)}

**Report Structure (Use Plain Text Headings/Lists):**
1. Profile Overview: Briefly mention the username ({username}).
2. Biography Summary: Summarize the key themes, stated purpose, or activities mentioned in the biography text (2-4 sentences). If empty or nonsensical, state that.
3. Sentiment Analysis: State the inferred overall sentiment of the biography text (Positive, Negative, Neutral, Mixed, or Not Applicable if empty/nonsensical).
4. Key Information Extraction: List any explicitly mentioned locations, organizations, projects, or skills found directly in the bio text. If none, state "No specific entities mentioned."
5. Potential Interests (Inferred): Mention 1-2 high-level interests that might be inferred speculatively from the bio or username, clearly labeled as speculation. If none, state "No specific interests could be reasonably inferred."
6. Concluding Remark: One sentence noting the analysis is based solely on the provided bio text.

**Output:** {PLAIN_TEXT_RULE}
"""


def _forensic_prompt(profile: Profile) -> str:
    return f"""
**Task:** Analyze the provided Instagram biography text *strictly* for potential digital forensic points of interest. Focus only on patterns and explicit mentions within the text. Do not make assumptions beyond the text.

**Biography Text (JSON-escaped):** {escape_json_string(profile.biography)}

**Analysis Points (Use Plain Text Headings/Lists):**
1. Potential PII Indicators: patterns that might resemble PII (email format user@domain.com, phone number patterns XXX-XXX-XXXX, specific location names). If none, state "No direct PII pattern indicators identified in the bio text."
2. Explicitly Mentioned Locations: cities, states, countries, or landmarks. If none, state "No locations mentioned."
3. Explicit Mentions/Connections: other usernames (@mentions) or URLs beginning with http/https. If none, state "No external usernames or URLs mentioned."
4. Keywords/Themes of Interest: 3-5 key terms present in the bio that might be relevant for further investigation. If none, state "No specific keywords/themes identified."
5. Language/Tone Notes: comment only if the language seems unusual, coded, highly technical, or noteworthy in tone.

**Output:** {PLAIN_TEXT_RULE} State clearly when no relevant information was found for a point.
"""


def _authenticity_prompt(profile: Profile) -> str:
    return f"""
You are a digital forensics expert analyzing Instagram data. Examine the following profile data and provide a forensic assessment.

Profile Information:
- Username: {profile.username}
- Full Name: {escape_json_string(profile.full_name)}
- Biography: {escape_json_string(profile.biography)}
- Followers: {profile.followers_count if profile.followers_count is not None else "unknown"}
- Following: {profile.following_count if profile.following_count is not None else "unknown"}
- Verified: {bool(profile.is_verified)}
- Private: {bool(profile.is_private)}

Focus your analysis on:
1. Account authenticity assessment
2. Audience demographics estimation
3. Profile optimization analysis
4. Potential security or privacy concerns
5. Notable patterns in profile presentation

{PLAIN_TEXT_RULE}
"""


def _counts_line(counts: dict[str, int]) -> str:
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return ", ".join(f"{key} {count}" for key, count in ranked) or "none"


def _temporal_prompt(profile: Profile, posts: Sequence[Post] | None) -> str:
    ordered = _sorted(posts)
    if not ordered:
        timeline = NO_POSTS_TEXT
    else:
        lines = [f"- {iso_utc(p.timestamp)} ({p.timestamp})" for p in ordered]
        timeline = (
            f"The data spans from {iso_utc(ordered[0].timestamp)} "
            f"to {iso_utc(ordered[-1].timestamp)} ({len(ordered)} posts).\n\n"
            "Post timestamps (UTC, oldest first):\n" + "\n".join(lines)
        )
        patterns = compute_posting_patterns(ordered)
        timeline += (
            f"\n\nPosts per weekday (UTC): {_counts_line(patterns['peak_days'])}\n"
            f"Posts per 4-hour slot (UTC): {_counts_line(patterns['peak_hours'])}"
        )
    return f"""
As a digital forensics analyst, examine the following Instagram posting timeline for user {profile.username}.

{timeline}

Analyze this data to determine:
1. Posting frequency patterns (daily, weekly, monthly trends)
2. Time-of-day patterns (when posts are typically published)
3. Seasonal or periodic variations in posting activity
4. Unusual gaps or spikes in posting frequency
5. Evolution of posting behavior over time

Cite specific examples from the data and identify anomalies that might warrant further investigation.

{PLAIN_TEXT_RULE}
"""


# ── comprehensive JSON prompt ────────────────────────────────────────────────

def _format_posts(posts: list[Post]) -> str:
    blocks = []
    for idx, post in enumerate(posts, start=1):
        tagged = ", ".join(post.tagged_users) if post.tagged_users else "None"
        blocks.append(
            f"Post {idx}:\n"
            f"  Date: {iso_utc(post.timestamp)}\n"
            f"  Caption: {post.caption or 'None'}\n"
            f"  Likes: {post.like_count}  Comments: {post.comment_count}\n"
            f"  Type: {post.media_type or 'unknown'}"
            f"{f' ({len(post.children)} items)' if post.children else ''}\n"
            f"  Tagged: {tagged}\n"
            f"  Location: {post.location or 'None'}\n"
        )
    return "\n".join(blocks)


def _format_timeline(posts: list[Post]) -> str:
    sample = posts[:MAX_SAMPLE_TIMESTAMPS]
    return (
        "Post Timeline:\n"
        f"- Oldest: {iso_utc(posts[0].timestamp)}\n"
        f"- Newest: {iso_utc(posts[-1].timestamp)}\n"
        f"- Post Count: {len(posts)}\n"
        "Sample Timestamps:\n" + "\n".join(f"- {iso_utc(p.timestamp)}" for p in sample)
    )


def _profile_context(profile: Profile) -> dict[str, Any]:
    ctx: dict[str, Any] = {
        "username": profile.username,
        "biography_text": profile.biography or "",
    }
    if profile.full_name:
        ctx["fullname"] = profile.full_name
    if profile.followers_count is not None:
        ctx["follower_count"] = profile.followers_count
    if profile.following_count is not None:
        ctx["following_count"] = profile.following_count
    if profile.is_verified is not None:
        ctx["is_verified"] = profile.is_verified
    return ctx


def _inferred(name: str) -> list[dict[str, str]]:
    return [{name: "string", "reasoning": "string", "confidence": "Low | Medium | High"}]


def analysis_skeleton(profile: Profile, *, model: str, timestamp: str, with_posts: bool) -> dict[str, Any]:
    """Target JSON structure with value-type placeholders, as shown to the model."""
    summary_patterns = {"summary": "string", "patterns": ["string"]}
    skeleton: dict[str, Any] = {
        "analysis_metadata": {
            "timestamp_utc": timestamp,
            "model_used": model,
            "analysis_version": SCHEMA_VERSION,
        },
        "profile_context": _profile_context(profile),
        "initial_profile_analysis": {
            "profile_overview": "string",
            "biography_summary": "string",
            "sentiment_analysis": {"label": "Positive | Negative | Neutral | Mixed", "score": "float -1.0..1.0"},
            "key_information": ["string"],
            "potential_interests": ["string"],
        },
        "forensic_analysis": {
            "pii_indicators": ["string"],
            "mentioned_locations": ["string"],
            "external_connections": {"usernames": ["string"], "urls": ["string"]},
            "keywords_of_interest": ["string"],
            "language_notes": "string",
        },
        "account_authenticity": {
            "assessment": "string",
            "indicators": {"positive": ["string"], "negative": ["string"], "neutral": ["string"]},
            "recommendations": ["string"],
        },
        "entity_extraction": {
            key: ["string"] for key in (
                "mentions", "hashtags", "urls", "emails", "phone_numbers", "locations",
                "organizations", "persons", "technologies_tools", "projects_products",
            )
        },
    }
    if with_posts:
        skeleton["temporal_analysis"] = {
            "posting_frequency": summary_patterns,
            "time_of_day_patterns": summary_patterns,
            "seasonal_variations": ["string"],
            "gaps_or_spikes": ["string"],
            "evolution_over_time": "string",
            "anomalies": ["string"],
        }
        skeleton["content_analysis"] = {
            "dominant_themes": ["string"],
            "linguistic_style": summary_patterns,
            "hashtag_strategy": "string",
            "mention_patterns": ["string"],
            "sentiment_evolution": {"summary": "string", "trends": ["string"]},
            "content_evolution": "string",
            "automated_vs_human": {"assessment": "string", "indicators": ["string"]},
            "concerning_content": ["string"],
            "post_analyses": [{
                "timestamp": "YYYY-MM-DDTHH:MM:SSZ",
                "summary": "string",
                "key_observations": ["string"],
                "sentiment": "string",
                "themes": ["string"],
            }],
        }
    skeleton["inferred_analysis"] = {
        "potential_interests": _inferred("interest"),
        "potential_affiliations": _inferred("affiliation"),
        "potential_skills": _inferred("skill"),
        "potential_locations": _inferred("location"),
    }
    skeleton["network_graph_data"] = {
        "nodes": [{"id": "profile_owner", "label": profile.username, "type": "ProfileOwner"}],
        "edges": [{"source": "string (node id)", "target": "string (node id)", "label": "string"}],
    }
    skeleton["visualization_data"] = {
        "posting_heatmap": [{"day": "int 0-6 (0 = Sunday)", "hour": "int 0-23 UTC", "count": "int"}],
        "sentiment_timeline": [{"timestamp": "int unix seconds", "sentiment": "float -1.0..1.0"}],
        "topic_distribution": [{"topic": "string", "count": "int"}],
        "mention_network": {
            "nodes": [{"id": "string", "label": "string", "weight": "float"}],
            "edges": [{"source": "string", "target": "string", "weight": "float"}],
        },
    }
    return skeleton


def _comprehensive_prompt(profile: Profile, posts: Sequence[Post] | None, *, model: str, timestamp: str) -> str:
    ordered = _sorted(posts)
    profile_lines = [
        f"- Username: {profile.username}",
        f"- Biography: {escape_json_string(profile.biography)}",
    ]
    if profile.full_name:
        profile_lines.append(f"- Full Name: {escape_json_string(profile.full_name)}")
    if profile.followers_count is not None:
        profile_lines.append(f"- Followers: {profile.followers_count}")
    if profile.following_count is not None:
        profile_lines.append(f"- Following: {profile.following_count}")
    if profile.is_verified is not None:
        profile_lines.append(f"- Verified: {str(profile.is_verified).lower()}")
    if profile.is_private is not None:
        profile_lines.append(f"- Private: {str(profile.is_private).lower()}")

    if ordered:
        post_section = f"POST DATA:\n{_format_posts(ordered)}\nTIMELINE DATA:\n{_format_timeline(ordered)}"
    else:
        post_section = NO_POSTS_TEXT

    skeleton = analysis_skeleton(profile, model=model, timestamp=timestamp, with_posts=bool(ordered))

    return f"""
You are a digital forensics expert specializing in social media analysis. Analyze an Instagram profile and provide a complete, structured analysis in JSON format that will be parsed by a visualization frontend.

PROFILE DATA:
{chr(10).join(profile_lines)}

{post_section}

ANALYSIS REQUIREMENTS:
1. Analyze all provided profile information.
2. Identify patterns, entities, and insights. Clearly mark speculation through the confidence field.
3. Format your entire response as a SINGLE JSON object matching the exact schema below. Placeholder values describe the expected type; replace them with real values.
4. Populate network_graph_data with every explicit connection (mentions, tagged users, organizations, locations) linked to the profile_owner node.
5. If certain data is unavailable, use empty arrays or empty strings rather than omitting keys.

OUTPUT FORMAT:
Respond ONLY with a valid JSON object following this exact structure:

{json.dumps(skeleton, indent=2, ensure_ascii=False)}

{JSON_ONLY_RULES}
"""


def build_prompt(
    kind: PromptKind,
    profile: Profile,
    posts: Sequence[Post] | None = None,
    *,
    model: str = "",
    timestamp: datetime | None = None,
) -> str:
    """Render the prompt text for ``kind``.

    ``posts`` are only used by TEMPORAL and COMPREHENSIVE; they are always
    serialised oldest first.
    """
    kind = PromptKind(kind)
    if kind is PromptKind.REPORT:
        return _report_prompt(profile)
    if kind is PromptKind.FORENSIC:
        return _forensic_prompt(profile)
    if kind is PromptKind.AUTHENTICITY:
        return _authenticity_prompt(profile)
    if kind is PromptKind.TEMPORAL:
        return _temporal_prompt(profile, posts)
    return _comprehensive_prompt(profile, posts, model=model, timestamp=_utc_now_text(timestamp))
