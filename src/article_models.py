from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

# 記事カテゴリ（表示ラベル）
CATEGORY_DEFENSE_POLICY = "防衛政策"
CATEGORY_INTERNATIONAL = "国際情勢"
CATEGORY_TECHNOLOGY = "防衛技術"
CATEGORY_INTELLIGENCE = "インテリジェンス"
CATEGORY_CYBER_SECURITY = "サイバーセキュリティ"
CATEGORY_SPACE_DEFENSE = "宇宙防衛"
CATEGORY_MARITIME = "海洋安全保障"
CATEGORY_ANALYSIS = "分析レポート"
CATEGORY_DASHBOARD = "ダッシュボード"
CATEGORY_OTHER = "その他"

ARTICLE_CATEGORIES = [
    CATEGORY_DEFENSE_POLICY,
    CATEGORY_INTERNATIONAL,
    CATEGORY_TECHNOLOGY,
    CATEGORY_INTELLIGENCE,
    CATEGORY_CYBER_SECURITY,
    CATEGORY_SPACE_DEFENSE,
    CATEGORY_MARITIME,
    CATEGORY_ANALYSIS,
    CATEGORY_DASHBOARD,
    CATEGORY_OTHER,
]

NAME_MAP_EN = {
    CATEGORY_DEFENSE_POLICY: "Defense Policy",
    CATEGORY_INTERNATIONAL: "International Affairs",
    CATEGORY_TECHNOLOGY: "Defense Technology",
    CATEGORY_INTELLIGENCE: "Intelligence",
    CATEGORY_CYBER_SECURITY: "Cybersecurity",
    CATEGORY_SPACE_DEFENSE: "Space Defense",
    CATEGORY_MARITIME: "Maritime Security",
    CATEGORY_ANALYSIS: "Analysis Report",
    CATEGORY_DASHBOARD: "Dashboard",
    CATEGORY_OTHER: "Others",
}

CATEGORY_COLOR = {
    CATEGORY_DEFENSE_POLICY: "bg-red-100 text-red-800",
    CATEGORY_INTERNATIONAL: "bg-orange-100 text-orange-800",
    CATEGORY_TECHNOLOGY: "bg-blue-100 text-blue-800",
    CATEGORY_INTELLIGENCE: "bg-purple-100 text-purple-800",
    CATEGORY_CYBER_SECURITY: "bg-green-100 text-green-800",
    CATEGORY_SPACE_DEFENSE: "bg-indigo-100 text-indigo-800",
    CATEGORY_MARITIME: "bg-cyan-100 text-cyan-800",
    CATEGORY_ANALYSIS: "bg-violet-100 text-violet-800",
    CATEGORY_DASHBOARD: "bg-pink-100 text-pink-800",
    CATEGORY_OTHER: "bg-gray-100 text-gray-800",
}

# カテゴリ推測の優先順（上から順に判定し、最初に当たったものを採用）
CATEGORY_RULES = [
    (CATEGORY_DASHBOARD, ("dashboard", "ダッシュボード")),
    (CATEGORY_TECHNOLOGY, ("ai", "人工知能")),
    (CATEGORY_CYBER_SECURITY, ("cyber", "サイバー")),
    (CATEGORY_INTELLIGENCE, ("intel", "intelligence", "情報")),
    (CATEGORY_INTERNATIONAL, ("iran", "israel", "international")),
    (CATEGORY_DEFENSE_POLICY, ("policy", "方針", "政策")),
    (CATEGORY_SPACE_DEFENSE, ("space", "宇宙")),
    (CATEGORY_MARITIME, ("maritime", "海洋")),
    (CATEGORY_ANALYSIS, ("analysis", "分析")),
]

LANG_JA = "ja"
LANG_EN = "en"
LANG_BOTH = "both"

UNTITLED = "タイトルなし"
DEFAULT_AUTHOR = "防衛情報研究センター"


class ArticleNotFoundError(FileNotFoundError):
    """記事ファイルが存在しない（API では 404 に対応）"""


@dataclass
class ArticleRecord:
    """記事HTML 1ファイルから毎回計算し直す派生データ。"""

    id: str
    slug: str
    title: str
    published_at: datetime
    content: str
    category: str
    excerpt: str
    content_languages: list[str] = field(default_factory=lambda: [LANG_BOTH])
    title_ja: Optional[str] = None
    title_en: Optional[str] = None
    excerpt_ja: Optional[str] = None
    excerpt_en: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    tech_tags: list[str] = field(default_factory=list)
    primary_tech_tags: list[str] = field(default_factory=list)
    read_time: int = 1
    word_count: int = 0
    images: list[str] = field(default_factory=list)
    featured_image: Optional[str] = None
    author: str = ""
    last_modified: Optional[datetime] = None
    status: str = "published"
    featured: bool = False
    view_count: int = 0

    def supports_language(self, lang: str) -> bool:
        return lang in self.content_languages or LANG_BOTH in self.content_languages

    def display_title(self, lang: str = LANG_JA) -> str:
        localized = self.title_en if lang == LANG_EN else self.title_ja
        return localized or self.title

    def display_excerpt(self, lang: str = LANG_JA) -> str:
        localized = self.excerpt_en if lang == LANG_EN else self.excerpt_ja
        return localized or self.excerpt

    def to_dict(self, include_content: bool = False) -> dict[str, Any]:
        data = asdict(self)
        data["published_at"] = self.published_at.isoformat()
        data["last_modified"] = self.last_modified.isoformat() if self.last_modified else None
        if not include_content:
            data.pop("content", None)
        return data


def category_name(category: str, lang: str = LANG_JA) -> str:
    if lang == LANG_EN:
        return NAME_MAP_EN.get(category, category)
    return category


def category_color(category: str) -> str:
    return CATEGORY_COLOR.get(category, CATEGORY_COLOR[CATEGORY_OTHER])


def format_read_time(minutes: int, lang: str = LANG_JA) -> str:
    if lang == LANG_EN:
        if minutes < 1:
            return "Less than 1 min"
        return f"{minutes} min"
    if minutes < 1:
        return "1分未満"
    return f"{minutes}分"
