"""Normalise the ``web_profile_info`` response into Profile / Post.

This is the only place that touches the raw, loosely-typed payload. Every
lookup defaults instead of raising, so a partially populated response still
yields a Profile.
"""
from typing import Any

from pydantic import ValidationError

from insta_lens.errors import MalformedResponseError
from insta_lens.models import MediaChild, Post, Profile


def _dig(obj: Any, *keys: str | int) -> Any:
    """Walk nested dicts/lists; return None as soon as a step is missing."""
    for key in keys:
        if isinstance(key, int):
            if not isinstance(obj, list) or len(obj) <= key:
                return None
        elif not isinstance(obj, dict):
            return None
        obj = obj[key] if isinstance(key, int) else obj.get(key)
        if obj is None:
            return None
    return obj


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ("" if value is None else str(value))


def _int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _opt_int(value: Any) -> int | None:
    return None if value is None else _int(value)


def _opt_str(value: Any) -> str | None:
    return _str(value) or None


def _opt_bool(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def _edge_nodes(connection: Any) -> list[dict]:
    """Return the ``node`` dicts of a GraphQL ``{"edges": [{"node": ...}]}`` connection."""
    edges = _dig(connection, "edges")
    if not isinstance(edges, list):
        return []
    return [e["node"] for e in edges if isinstance(e, dict) and isinstance(e.get("node"), dict)]


def parse_child(node: dict) -> MediaChild:
    is_video = bool(node.get("is_video"))
    return MediaChild(
        id=_str(node.get("id")),
        shortcode=_str(node.get("shortcode")),
        display_url=_str(node.get("display_url")),
        is_video=is_video,
        video_url=(_str(node.get("video_url")) or None) if is_video else None,
        media_type=_str(node.get("__typename")),
    )


def parse_post(node: dict) -> Post:
    """Build a Post from one ``edge_owner_to_timeline_media`` node."""
    is_video = bool(node.get("is_video"))

    tagged_users = None
    if isinstance(_dig(node, "edge_media_to_tagged_user", "edges"), list):
        tagged_users = [
            _str(username) for n in _edge_nodes(node["edge_media_to_tagged_user"])
            if (username := _dig(n, "user", "username"))
        ]

    children = None
    if isinstance(_dig(node, "edge_sidecar_to_children", "edges"), list):
        children = [parse_child(n) for n in _edge_nodes(node["edge_sidecar_to_children"])]

    location = _dig(node, "location", "name")

    return Post(
        id=_str(node.get("id")),
        shortcode=_str(node.get("shortcode")),
        display_url=_str(node.get("display_url")),
        is_video=is_video,
        video_url=(_str(node.get("video_url")) or None) if is_video else None,
        caption=_str(_dig(node, "edge_media_to_caption", "edges", 0, "node", "text")),
        timestamp=_int(node.get("taken_at_timestamp")),
        like_count=_int(_dig(node, "edge_liked_by", "count")),
        comment_count=_int(_dig(node, "edge_media_to_comment", "count")),
        location=_str(location) if location is not None else None,
        tagged_users=tagged_users,
        media_type=_str(node.get("__typename")),
        children=children,
    )


def parse_profile(username: str, payload: Any) -> Profile:
    """Turn the decoded JSON body into a Profile.

    Raises MalformedResponseError when ``data.user`` or its ``id`` is absent,
    or when the user object cannot be normalised at all.
    """
    user = _dig(payload, "data", "user")
    if not isinstance(user, dict):
        raise MalformedResponseError(f"User object not found in response for {username}")
    user_id = user.get("id")
    if not user_id:
        raise MalformedResponseError(f"User ID not found in response for {username}")

    try:
        posts = None
        if isinstance(_dig(user, "edge_owner_to_timeline_media", "edges"), list):
            posts = [parse_post(n) for n in _edge_nodes(user["edge_owner_to_timeline_media"])]

        return Profile(
            username=username,
            user_id=_str(user_id),
            full_name=_opt_str(user.get("full_name")),
            biography=_opt_str(user.get("biography")),
            followers_count=_opt_int(_dig(user, "edge_followed_by", "count")),
            following_count=_opt_int(_dig(user, "edge_follow", "count")),
            is_private=_opt_bool(user.get("is_private")),
            is_verified=_opt_bool(user.get("is_verified")),
            profile_pic_url=_opt_str(user.get("profile_pic_url_hd")) or _opt_str(user.get("profile_pic_url")),
            posts=posts,
        )
    except ValidationError as exc:
        raise MalformedResponseError(f"Unusable user object in response for {username}: {exc}") from exc
