"""記事HTMLファイルパーサー

HTMLファイルを解析して ArticleRecord を作る。どの抽出ステップも、壊れたHTMLで
例外を投げずに既定値へ落ちる。キャッシュは持たず、読むたびに計算し直す。
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from bs4 import BeautifulSoup
from bs4.element import PreformattedString

from article_models import (
    CATEGORY_OTHER,
    CATEGORY_RULES,
    DEFAULT_AUTHOR,
    LANG_BOTH,
    LANG_EN,
    LANG_JA,
    UNTITLED,
    ArticleNotFoundError,
    ArticleRecord,
)
from html_segments import make_soup
from tech_tags import infer_tech_tags, primary_tech_tags
from text_clean import truncate

HTML_SUFFIX = ".html"
DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
# JST 0時に相当する UTC 15:00 で日付を固定する
PUBLISH_HOUR_UTC = 15

EXCERPT_MAX = 200
MAX_TAGS = 10
CHARS_PER_MINUTE = 200
COMMON_TAGS = ["防衛", "安全保障", "AI", "技術", "分析", "レポート"]

JA_CHAR_RE = re.compile(r"[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF]")
EN_CHAR_RE = re.compile(r"[a-zA-Z]")
JA_RATIO_THRESHOLD = 0.1
# 記号や数字が混ざるので英語は高めの閾値
EN_RATIO_THRESHOLD = 0.3

IMAGE_EXT_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg|bmp|ico)($|\?|#)", re.IGNORECASE)
BG_IMAGE_RE = re.compile(r"background-image:\s*url\(['\"]?([^'\")]+)['\"]?\)")
ARTICLES_PUBLIC_PREFIX = "/articles/"

_NON_BODY_TEXT_PARENTS = {"head", "title", "script", "style", "noscript", "template"}


@dataclass
class LanguageInfo:
    content_languages: list[str]
    title_ja: Optional[str] = None
    title_en: Optional[str] = None
    excerpt_ja: Optional[str] = None
    excerpt_en: Optional[str] = None


def slug_from_filename(file_name: str) -> str:
    name = Path(file_name).name
    if name.lower().endswith(HTML_SUFFIX):
        return name[: -len(HTML_SUFFIX)]
    return name


def _meta(soup: BeautifulSoup, name: str | None = None, prop: str | None = None) -> str:
    attrs = {"property": prop} if prop else {"name": name}
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()


def body_text(soup: BeautifulSoup) -> str:
    """body の表示テキスト（script/style 内のテキストは含めない）"""
    root = soup.body if soup.body is not None else soup
    parts = []
    for node in root.find_all(string=True):
        if isinstance(node, PreformattedString):
            continue
        if any(p.name in _NON_BODY_TEXT_PARENTS for p in node.parents):
            continue
        parts.append(str(node))
    return "".join(parts)


def extract_title(soup: BeautifulSoup) -> str:
    for tag_name in ("title", "h1"):
        tag = soup.find(tag_name)
        if tag is not None:
            text = tag.get_text().strip()
            if text:
                return text
    return UNTITLED


def extract_date_from_filename(file_name: str, now: datetime | None = None) -> datetime:
    m = DATE_PREFIX_RE.match(Path(file_name).name)
    if m:
        year, month, day = (int(g) for g in m.groups())
        try:
            return datetime(year, month, day, PUBLISH_HOUR_UTC, tzinfo=timezone.utc)
        except ValueError:
            print(f"[WARN] step=parse file={file_name} invalid date prefix; using current time")
    return now or datetime.now(timezone.utc)


def infer_category(slug: str, title: str) -> str:
    """固定キーワード表を決まった順に当てる。最初に当たったものが勝ち（技術タグは見ない）。"""
    text = f"{slug} {title}".lower()
    for category, keywords in CATEGORY_RULES:
        if any(k in text for k in keywords):
            return category
    return CATEGORY_OTHER


def generate_excerpt(soup: BeautifulSoup, text: str) -> str:
    desc = _meta(soup, name="description")
    if desc:
        return truncate(desc, EXCERPT_MAX)
    p = soup.find("p")
    if p is not None:
        p_text = p.get_text().strip()
        if p_text:
            return truncate(p_text, EXCERPT_MAX)
    return truncate(text.strip(), EXCERPT_MAX)


def extract_tags(soup: BeautifulSoup, slug: str, title: str) -> list[str]:
    tags: dict[str, None] = {}
    for keyword in _meta(soup, name="keywords").split(","):
        keyword = keyword.strip()
        if keyword:
            tags[keyword] = None

    text = f"{slug} {title}".lower()
    for tag in COMMON_TAGS:
        if tag.lower() in text:
            tags[tag] = None
    return list(tags)[:MAX_TAGS]


def extract_author(soup: BeautifulSoup) -> str:
    return _meta(soup, name="author")


def is_valid_image_url(url: str | None) -> bool:
    if not url or not url.strip():
        return False
    # data: URL（base64画像）は重いので除外
    if url.startswith("data:"):
        return False
    return bool(IMAGE_EXT_RE.search(url)) or "image" in url or "photo" in url


def resolve_image_url(url: str) -> str:
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith("./"):
        return f"{ARTICLES_PUBLIC_PREFIX}{url[2:]}"
    if url.startswith("/"):
        return url
    return f"{ARTICLES_PUBLIC_PREFIX}{url}"


def extract_images(soup: BeautifulSoup) -> list[str]:
    images: dict[str, None] = {}
    for img in soup.find_all("img"):
        src = img.get("src")
        if is_valid_image_url(src):
            images[resolve_image_url(src)] = None

    for el in soup.find_all(style=re.compile("background-image")):
        m = BG_IMAGE_RE.search(el.get("style") or "")
        if m and is_valid_image_url(m.group(1)):
            images[resolve_image_url(m.group(1))] = None
    return list(images)


def extract_featured_image(soup: BeautifulSoup) -> str | None:
    # og:image > twitter:image > featured-image > 最初の img
    candidates = [
        _meta(soup, prop="og:image"),
        _meta(soup, name="twitter:image"),
        _meta(soup, name="featured-image"),
    ]
    for url in candidates:
        if is_valid_image_url(url):
            return resolve_image_url(url)

    first_img = soup.find("img")
    if first_img is not None:
        src = first_img.get("src")
        if is_valid_image_url(src):
            return resolve_image_url(src)
    return None


def has_japanese(text: str) -> bool:
    if not text:
        return False
    return len(JA_CHAR_RE.findall(text)) >= len(text) * JA_RATIO_THRESHOLD


def has_english(text: str) -> bool:
    if not text:
        return False
    return len(EN_CHAR_RE.findall(text)) >= len(text) * EN_RATIO_THRESHOLD


def _declared_language(soup: BeautifulSoup) -> str:
    lang = _meta(soup, name="article:language") or _meta(soup, name="language")
    if not lang and soup.html is not None:
        lang = (soup.html.get("lang") or "").strip()
    return lang.lower()


def extract_language_info(soup: BeautifulSoup, text: str, default_title: str, default_excerpt: str) -> LanguageInfo:
    info = LanguageInfo(
        content_languages=[],
        title_ja=_meta(soup, name="title:ja") or None,
        title_en=_meta(soup, name="title:en") or None,
        excerpt_ja=_meta(soup, name="description:ja") or None,
        excerpt_en=_meta(soup, name="description:en") or None,
    )

    supported = _meta(soup, name="article:languages")
    if supported:
        # content="ja,en" 形式
        langs = [s.strip() for s in supported.lower().split(",")]
        if LANG_JA in langs and LANG_EN in langs:
            info.content_languages = [LANG_BOTH]
        elif LANG_JA in langs:
            info.content_languages = [LANG_JA]
        elif LANG_EN in langs:
            info.content_languages = [LANG_EN]
    else:
        ja = has_japanese(text)
        en = has_english(text)
        if ja and en:
            info.content_languages = [LANG_BOTH]
        elif ja:
            info.content_languages = [LANG_JA]
            info.title_ja = info.title_ja or default_title or None
            info.excerpt_ja = info.excerpt_ja or default_excerpt or None
        elif en:
            info.content_languages = [LANG_EN]
            info.title_en = info.title_en or default_title or None
            info.excerpt_en = info.excerpt_en or default_excerpt or None
        else:
            declared = _declared_language(soup)
            if declared in ("ja", "ja-jp"):
                info.content_languages = [LANG_JA]
            elif declared in ("en", "en-us"):
                info.content_languages = [LANG_EN]

    if not info.content_languages:
        info.content_languages = [LANG_BOTH]
    return info


def calculate_read_time(word_count: int) -> int:
    return max(1, round(word_count / CHARS_PER_MINUTE))


def generate_toc(html_text: str) -> list[dict[str, Any]]:
    soup = make_soup(html_text)
    headings = []
    for index, el in enumerate(soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])):
        text = el.get_text().strip()
        if text:
            headings.append({"level": int(el.name[1]), "text": text, "id": el.get("id") or f"heading-{index}"})
    return headings


def extract(
    html_text: str,
    file_name: str,
    file_modified_at: datetime | None = None,
    default_author: str = DEFAULT_AUTHOR,
    now: datetime | None = None,
) -> ArticleRecord:
    html_text = html_text or ""
    soup = make_soup(html_text)
    slug = slug_from_filename(file_name)

    title = extract_title(soup)
    text = body_text(soup)
    excerpt = generate_excerpt(soup, text)
    word_count = len(text)
    tags = extract_tags(soup, slug, title)
    lang = extract_language_info(soup, text, title, excerpt)

    tech_ids = infer_tech_tags(slug, title, tags)

    return ArticleRecord(
        id=slug,
        slug=slug,
        title=title,
        title_ja=lang.title_ja,
        title_en=lang.title_en,
        published_at=extract_date_from_filename(file_name, now=now),
        content=html_text,
        content_languages=lang.content_languages,
        category=infer_category(slug, title),
        excerpt=excerpt,
        excerpt_ja=lang.excerpt_ja,
        excerpt_en=lang.excerpt_en,
        tags=tags,
        tech_tags=tech_ids,
        primary_tech_tags=primary_tech_tags(tech_ids),
        read_time=calculate_read_time(word_count),
        word_count=word_count,
        images=extract_images(soup),
        featured_image=extract_featured_image(soup),
        author=extract_author(soup) or default_author,
        last_modified=file_modified_at,
    )


def create_article_from_file(path: str | Path, default_author: str = DEFAULT_AUTHOR) -> ArticleRecord:
    path = Path(path)
    try:
        # 文字化けしてもパースは続ける
        html_text = path.read_text(encoding="utf-8", errors="replace")
        mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    except FileNotFoundError as e:
        raise ArticleNotFoundError(f"Article not found: {path}") from e
    return extract(html_text, path.name, mtime, default_author=default_author)


def parse_directory(dir_path: str | Path, default_author: str = DEFAULT_AUTHOR) -> list[ArticleRecord]:
    """ディレクトリ内の全 .html を解析し、公開日の新しい順で返す。

    個別ファイルの失敗はログだけ出してスキップする。
    """
    directory = Path(dir_path)
    if not directory.is_dir():
        print(f"[WARN] step=parse dir={directory} not found; no articles")
        return []

    articles = []
    for path in sorted(directory.glob(f"*{HTML_SUFFIX}")):
        try:
            articles.append(create_article_from_file(path, default_author=default_author))
        except Exception as e:
            print(f"[WARN] step=parse file={path.name} skipped err={e!r}")
    articles.sort(key=lambda a: a.published_at, reverse=True)
    return articles


def load_article(dir_path: str | Path, slug: str, default_author: str = DEFAULT_AUTHOR) -> ArticleRecord:
    if not slug or "/" in slug or "\\" in slug or slug.startswith("."):
        raise ArticleNotFoundError(f"Article not found: {slug}")
    return create_article_from_file(Path(dir_path) / f"{slug}{HTML_SUFFIX}", default_author=default_author)
