from datetime import datetime, timezone
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from article_models import (
    CATEGORY_ANALYSIS,
    CATEGORY_CYBER_SECURITY,
    CATEGORY_TECHNOLOGY,
    ArticleRecord,
    category_name,
    format_read_time,
)
from article_queries import (
    available_filters,
    calculate_stats,
    filter_articles,
    paginate,
    related_articles,
    sort_articles,
)


def _rec(slug, day, category=CATEGORY_ANALYSIS, title=None, tags=(), read_time=1, views=0, excerpt=""):
    return ArticleRecord(
        id=slug,
        slug=slug,
        title=title or slug,
        published_at=datetime(2025, 8, day, 15, tzinfo=timezone.utc),
        content="",
        category=category,
        excerpt=excerpt,
        tags=list(tags),
        read_time=read_time,
        word_count=read_time * 200,
        view_count=views,
    )


ARTICLES = [
    _rec("a", 1, title="Bravo", tags=["防衛"], read_time=3, views=5),
    _rec("b", 2, category=CATEGORY_CYBER_SECURITY, title="alpha", excerpt="ランサムウェア対策", views=9),
    _rec("c", 3, title="Charlie", tags=["AI", "分析"], read_time=10),
    _rec("d", 4, category=CATEGORY_TECHNOLOGY, title="Delta"),
]


def test_filter_by_category_search_tags_and_dates():
    assert [a.slug for a in filter_articles(ARTICLES, category=CATEGORY_ANALYSIS)] == ["a", "c"]
    assert len(filter_articles(ARTICLES, category="all")) == 4
    assert [a.slug for a in filter_articles(ARTICLES, search="ランサム")] == ["b"]
    assert [a.slug for a in filter_articles(ARTICLES, search="ai")] == ["c"]
    assert [a.slug for a in filter_articles(ARTICLES, tags=["防"])] == ["a"]
    date_from = datetime(2025, 8, 2, tzinfo=timezone.utc)
    date_to = datetime(2025, 8, 3, 23, tzinfo=timezone.utc)
    assert [a.slug for a in filter_articles(ARTICLES, date_from=date_from, date_to=date_to)] == ["b", "c"]


def test_sort_options():
    assert [a.slug for a in sort_articles(ARTICLES)] == ["d", "c", "b", "a"]
    assert [a.slug for a in sort_articles(ARTICLES, "title", "asc")] == ["b", "a", "c", "d"]
    assert [a.slug for a in sort_articles(ARTICLES, "views", "desc")][:2] == ["b", "a"]
    assert sort_articles(ARTICLES, "read_time", "desc")[0].slug == "c"
    # 未知のキーは日付順
    assert [a.slug for a in sort_articles(ARTICLES, "unknown", "asc")] == ["a", "b", "c", "d"]


def test_paginate():
    page = paginate(ARTICLES, page=2, limit=3)
    assert [a.slug for a in page.items] == ["d"]
    assert page.total_pages == 2
    assert page.has_prev and not page.has_next
    assert page.pagination() == {
        "currentPage": 2,
        "totalPages": 2,
        "totalCount": 4,
        "hasNext": False,
        "hasPrev": True,
    }
    empty = paginate([], page=1, limit=10)
    assert empty.total_pages == 0 and not empty.has_next


def test_related_articles_same_category_excluding_self():
    related = related_articles(ARTICLES[0], ARTICLES)
    assert [a.slug for a in related] == ["c"]

    many = [_rec(f"x{i}", i + 1) for i in range(8)]
    assert len(related_articles(many[0], many)) == 4


def test_calculate_stats():
    now = datetime(2025, 8, 20, tzinfo=timezone.utc)
    stats = calculate_stats(ARTICLES, now=now)
    assert stats["total_articles"] == 4
    assert stats["avg_read_time"] == 4
    assert stats["category_stats"][CATEGORY_ANALYSIS] == 2
    assert stats["categories"] == 3
    assert stats["recent_articles_count"] == 4
    assert calculate_stats([])["avg_read_time"] == 0


def test_available_filters():
    filters = available_filters(ARTICLES)
    assert filters["availableCategories"] == [CATEGORY_ANALYSIS, CATEGORY_CYBER_SECURITY, CATEGORY_TECHNOLOGY]
    assert filters["dateRange"]["earliest"].startswith("2025-08-01")
    assert available_filters([])["dateRange"]["latest"] is None


def test_category_name_and_read_time_labels():
    assert category_name(CATEGORY_CYBER_SECURITY, "en") == "Cybersecurity"
    assert category_name(CATEGORY_CYBER_SECURITY, "ja") == CATEGORY_CYBER_SECURITY
    assert category_name("未知", "en") == "未知"
    assert format_read_time(0, "en") == "Less than 1 min"
    assert format_read_time(5, "en") == "5 min"
    assert format_read_time(0) == "1分未満"
    assert format_read_time(3) == "3分"


def test_to_dict_serializes_dates_and_drops_content():
    data = ARTICLES[0].to_dict()
    assert data["published_at"] == "2025-08-01T15:00:00+00:00"
    assert "content" not in data
    assert "content" in ARTICLES[0].to_dict(include_content=True)
