from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from article_models import ArticleRecord

SORT_KEYS = {
    "date": lambda a: a.published_at,
    "title": lambda a: a.title.lower(),
    "views": lambda a: a.view_count,
    "read_time": lambda a: a.read_time,
}
RELATED_LIMIT = 4
RECENT_DAYS = 30


def filter_articles(
    articles: Iterable[ArticleRecord],
    category: str = "",
    search: str = "",
    tags: Iterable[str] = (),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    status: str = "",
) -> list[ArticleRecord]:
    """一覧APIの絞り込み。空の条件は無視する（category="all" も全件）。"""
    query = (search or "").strip().lower()
    wanted_tags = [t.lower() for t in tags if t]
    out = []
    for a in articles:
        if category and category != "all" and a.category != category:
            continue
        if wanted_tags and not any(w in t.lower() for w in wanted_tags for t in a.tags):
            continue
        if date_from and a.published_at < date_from:
            continue
        if date_to and a.published_at > date_to:
            continue
        if query:
            blob = f"{a.title} {a.excerpt} {' '.join(a.tags)}".lower()
            if query not in blob:
                continue
        if status and status != "all" and a.status != status:
            continue
        out.append(a)
    return out


def sort_articles(articles: Iterable[ArticleRecord], sort_by: str = "date", order: str = "desc") -> list[ArticleRecord]:
    key = SORT_KEYS.get(sort_by, SORT_KEYS["date"])
    return sorted(articles, key=key, reverse=(order != "asc"))


@dataclass
class Page:
    items: list[ArticleRecord]
    current_page: int
    total_pages: int
    total_count: int

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.current_page > 1

    def pagination(self) -> dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalCount": self.total_count,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


def paginate(articles: list[ArticleRecord], page: int = 1, limit: int = 10) -> Page:
    page = max(1, page)
    limit = max(1, limit)
    start = (page - 1) * limit
    return Page(
        items=articles[start:start + limit],
        current_page=page,
        total_pages=math.ceil(len(articles) / limit),
        total_count=len(articles),
    )


def related_articles(article: ArticleRecord, articles: Iterable[ArticleRecord], limit: int = RELATED_LIMIT) -> list[ArticleRecord]:
    """同じカテゴリの別記事（自分自身は除く）"""
    out = [a for a in articles if a.id != article.id and a.category == article.category]
    return out[:limit]


def calculate_stats(articles: list[ArticleRecord], now: datetime | None = None) -> dict[str, Any]:
    total = len(articles)
    category_stats: dict[str, int] = {}
    for a in articles:
        category_stats[a.category] = category_stats.get(a.category, 0) + 1

    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=RECENT_DAYS)
    return {
        "total_articles": total,
        "total_words": sum(a.word_count for a in articles),
        "avg_read_time": round(sum(a.read_time for a in articles) / total) if total else 0,
        "category_stats": category_stats,
        "recent_articles_count": sum(1 for a in articles if a.published_at >= cutoff),
        "categories": len(category_stats),
    }


def available_filters(articles: list[ArticleRecord]) -> dict[str, Any]:
    categories = list(dict.fromkeys(a.category for a in articles))
    dates = [a.published_at for a in articles]
    return {
        "availableCategories": categories,
        "dateRange": {
            "earliest": min(dates).isoformat() if dates else None,
            "latest": max(dates).isoformat() if dates else None,
        },
    }
