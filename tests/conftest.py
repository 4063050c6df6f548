"""Shared fixtures: a realistic ``web_profile_info`` payload and a parsed Profile."""
import copy

import pytest

from insta_lens.platforms.instagram.parser import parse_profile

RAW_PAYLOAD = {
    "data": {
        "user": {
            "id": "1234567",
            "username": "alice",
            "full_name": "Alice Example",
            "biography": 'Photographer in "Berlin"\nhello@alice.example',
            "edge_followed_by": {"count": 1520},
            "edge_follow": {"count": 310},
            "is_private": False,
            "is_verified": True,
            "profile_pic_url": "https://cdn.example/alice.jpg",
            "profile_pic_url_hd": "https://cdn.example/alice_hd.jpg",
            "edge_owner_to_timeline_media": {
                "edges": [
                    {
                        "node": {
                            "__typename": "GraphImage",
                            "id": "p2",
                            "shortcode": "BBB",
                            "display_url": "https://cdn.example/p2.jpg",
                            "is_video": False,
                            "edge_media_to_caption": {"edges": [{"node": {"text": "Sunset #berlin"}}]},
                            "taken_at_timestamp": 1700086400,
                            "edge_liked_by": {"count": 42},
                            "edge_media_to_comment": {"count": 3},
                            "location": {"name": "Berlin, Germany"},
                            "edge_media_to_tagged_user": {
                                "edges": [{"node": {"user": {"username": "bob"}}}]
                            },
                        }
                    },
                    {
                        "node": {
                            "__typename": "GraphSidecar",
                            "id": "p1",
                            "shortcode": "AAA",
                            "display_url": "https://cdn.example/p1.jpg",
                            "is_video": False,
                            "edge_media_to_caption": {"edges": [{"node": {"text": "Trip"}}]},
                            "taken_at_timestamp": 1700000000,
                            "edge_liked_by": {"count": 10},
                            "edge_media_to_comment": {"count": 1},
                            "edge_sidecar_to_children": {
                                "edges": [
                                    {"node": {"__typename": "GraphImage", "id": "c1", "shortcode": "C1",
                                              "display_url": "https://cdn.example/c1.jpg", "is_video": False}},
                                    {"node": {"__typename": "GraphVideo", "id": "c2", "shortcode": "C2",
                                              "display_url": "https://cdn.example/c2.jpg", "is_video": True,
                                              "video_url": "https://cdn.example/c2.mp4"}},
                                ]
                            },
                        }
                    },
                ]
            },
        }
    }
}


@pytest.fixture
def raw_payload() -> dict:
    return copy.deepcopy(RAW_PAYLOAD)


@pytest.fixture
def profile():
    return parse_profile("alice", copy.deepcopy(RAW_PAYLOAD))
