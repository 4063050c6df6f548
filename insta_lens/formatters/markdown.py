from insta_lens.models import AnalysisOutcome


def _bullets(items: list[str]) -> list[str]:
    return [f"- {item}" for item in items] or ["- _none_"]


def format_report(outcome: AnalysisOutcome) -> str:
    """Format an AnalysisOutcome into a Markdown report string."""
    profile = outcome.profile
    analysis = outcome.analysis
    if profile is None or analysis is None:
        return f"# @{outcome.username}\n\n**Error:** {outcome.error or 'no data'}\n"

    meta = analysis.analysis_metadata
    initial = analysis.initial_profile_analysis
    forensic = analysis.forensic_analysis
    authenticity = analysis.account_authenticity
    entities = analysis.entity_extraction

    source = "cache" if outcome.served_from_cache else "fresh fetch"
    lines = [
        f"# {profile.full_name or profile.username} (@{profile.username})",
        "",
        f"*{meta.model_used or 'unknown model'} · schema {meta.analysis_version} · "
        f"{meta.timestamp_utc} · served from {source}*",
        "",
        f"**Followers:** {profile.followers_count if profile.followers_count is not None else 'N/A'}  "
        f"**Following:** {profile.following_count if profile.following_count is not None else 'N/A'}  "
        f"**Verified:** {'yes' if profile.is_verified else 'no'}  "
        f"**Private:** {'yes' if profile.is_private else 'no'}  "
        f"**Posts fetched:** {len(profile.posts or [])}",
        "",
        f"> {profile.biography or '(no biography)'}",
        "",
        "## Overview",
        "",
        initial.profile_overview or "_No overview._",
        "",
    ]
    if initial.biography_summary:
        lines += [initial.biography_summary, ""]
    if initial.sentiment_analysis.label:
        lines += [
            f"**Sentiment:** {initial.sentiment_analysis.label} "
            f"({initial.sentiment_analysis.score:+.2f})",
            "",
        ]

    lines += ["## Account Authenticity", "", authenticity.assessment or "_No assessment._", ""]
    for label, items in (
        ("Positive indicators", authenticity.indicators.positive),
        ("Negative indicators", authenticity.indicators.negative),
    ):
        if items:
            lines += [f"**{label}:**", *_bullets(items), ""]

    lines += ["## Forensic Indicators", ""]
    lines += ["**PII indicators:**", *_bullets(forensic.pii_indicators), ""]
    lines += ["**Keywords of interest:**", *_bullets(forensic.keywords_of_interest), ""]

    found = [
        (name.replace("_", " ").capitalize(), values)
        for name, values in entities.model_dump(include=set(type(entities).model_fields)).items()
        if values
    ]
    if found:
        lines += ["## Entities", ""]
        lines += [f"- **{name}:** {', '.join(values)}" for name, values in found]
        lines.append("")

    inferred = analysis.inferred_analysis
    guesses = [
        *(f"Interest: {i.interest} ({i.confidence})" for i in inferred.potential_interests),
        *(f"Affiliation: {a.affiliation} ({a.confidence})" for a in inferred.potential_affiliations),
        *(f"Skill: {s.skill} ({s.confidence})" for s in inferred.potential_skills),
        *(f"Location: {loc.location} ({loc.confidence})" for loc in inferred.potential_locations),
    ]
    if guesses:
        lines += ["## Inferred (speculative)", "", *_bullets(guesses), ""]

    if analysis.temporal_analysis:
        temporal = analysis.temporal_analysis
        lines += [
            "## Posting Patterns",
            "",
            temporal.posting_frequency.summary or "_No summary._",
            "",
            *_bullets(temporal.posting_frequency.patterns + temporal.time_of_day_patterns.patterns),
            "",
        ]

    if analysis.content_analysis and analysis.content_analysis.dominant_themes:
        lines += ["## Dominant Themes", "", *_bullets(analysis.content_analysis.dominant_themes), ""]

    return "\n".join(lines)
