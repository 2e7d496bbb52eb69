"""Tests for trending tag counting."""

from __future__ import annotations

from types import SimpleNamespace

from idolyst.launchpad.service import count_trending_tags


def test_counts_and_orders_by_frequency() -> None:
    posts = [
        {"tags": ["ai", "saas"], "category": "tech"},
        {"tags": ["ai"], "category": "tech"},
        {"tags": ["fintech", "ai"], "category": "finance"},
    ]
    result = count_trending_tags(posts)
    assert [(t["tag"], t["count"]) for t in result] == [("ai", 3), ("saas", 1), ("fintech", 1)]


def test_first_category_wins() -> None:
    posts = [
        {"tags": ["ai"], "category": "tech"},
        {"tags": ["ai"], "category": "health"},
    ]
    assert count_trending_tags(posts)[0]["category"] == "tech"


def test_missing_category_defaults_to_general() -> None:
    assert count_trending_tags([{"tags": ["misc"], "category": None}])[0]["category"] == "general"


def test_featured_above_five() -> None:
    five = count_trending_tags([{"tags": ["a"], "category": "x"}] * 5)
    six = count_trending_tags([{"tags": ["a"], "category": "x"}] * 6)
    assert five[0]["is_featured"] is False
    assert six[0]["is_featured"] is True


def test_limit_and_untagged_posts() -> None:
    posts = [{"tags": [f"t{i}"], "category": "x"} for i in range(15)] + [{"tags": None, "category": "x"}]
    result = count_trending_tags(posts, limit=10)
    assert len(result) == 10
    assert result[0]["tag"] == "t0"


def test_accepts_objects() -> None:
    posts = [SimpleNamespace(tags=["ai"], category="tech")]
    assert count_trending_tags(posts) == [{"tag": "ai", "count": 1, "category": "tech", "is_featured": False}]
