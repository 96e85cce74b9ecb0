# src/render_site.py
from __future__ import annotations

import argparse
import json
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from jinja2 import Template

from article_models import (
    LANG_EN,
    LANG_JA,
    ArticleRecord,
    category_color,
    category_name,
    format_read_time,
)
from article_parser import generate_toc, parse_directory
from article_queries import available_filters, calculate_stats, paginate, related_articles
from article_renderer import build_asset_paths, render_detail_page
from script_isolation import ScriptExecutionState
from site_config import DEFAULT_CONFIG_PATH, load_site_config
from tech_tags import get_tech_tags, sort_tech_tags
from text_clean import clean_for_html, squash_spaces, truncate_with_suffix

CARD_EXCERPT_LEN = 120


def _now_sec():
    return time.perf_counter()


def fmt_date(dt: datetime) -> str:
    return dt.strftime("%Y/%m/%d")


COMMON_CSS = r"""
:root{
  --bg: #fff;
  --panel: #f9fafb;
  --text-main: #1f2937;
  --text-sub: #6b7280;
  --border: #e5e7eb;
  --accent: #1e3a8a;
  --accent-soft: #dbeafe;
}
body{background:var(--bg);color:var(--text-main);margin:0 auto;max-width:1100px;padding:0 16px}
h1{margin:0 0 10px}
h2{margin:22px 0 10px}
.meta,.small{color:var(--text-sub);font-size:12px}
.meta{margin:6px 0 14px}
.nav{display:flex;gap:10px;flex-wrap:wrap;align-items:center;margin:10px 0 18px}
.nav a,.nav button{display:inline-block;border:1px solid var(--border);border-radius:999px;padding:6px 10px;text-decoration:none;color:#111;background:var(--bg);cursor:pointer}
.nav a.active{border-color:var(--accent);color:var(--accent);font-weight:700}
.card{background:var(--panel);border:1px solid var(--border);border-radius:12px;padding:14px;margin:12px 0}
.category-badge,.tech-tag{display:inline-block;border-radius:999px;padding:2px 8px;font-size:12px;border:1px solid transparent;margin-right:4px}
.view-mode{display:flex;gap:6px;margin:12px 0}
.view-mode button{padding:4px 10px;border:1px solid var(--border);border-radius:8px;background:var(--bg);cursor:pointer}
.pager{display:flex;gap:10px;justify-content:center;margin:20px 0}
a{color:inherit;text-decoration:none}
a:hover{color:var(--accent)}
body.en [data-lang-ja]{display:none}
body:not(.en) [data-lang-en]{display:none}
"""

COMMON_JS = r"""
(function () {
  var storageKey = document.documentElement.getAttribute('data-lang-key') || 'defense-intel-language';
  var lang = 'ja';
  try { lang = localStorage.getItem(storageKey) || 'ja'; } catch (e) {}
  if (lang === 'en') { document.body.classList.add('en'); }
})();
"""

LIST_HTML = r"""
<!doctype html>
<html lang="ja" data-lang-key="{{ storage_key|e }}">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{{ site_name|e }}{% if page.current_page > 1 %} ({{ page.current_page }}){% endif %}</title>
  <meta name="description" content="{{ site_name|e }} の記事一覧">
  <meta property="og:title" content="{{ site_name|e }}">
  <meta property="og:type" content="website">
  <meta property="og:url" content="{{ nav_prefix }}">
  <meta property="og:site_name" content="{{ site_name|e }}">
  <meta property="og:locale" content="ja_JP">
  <link rel="canonical" href="{{ nav_prefix }}">
  <link rel="stylesheet" href="{{ common_css_href }}">
</head>
<body>
  <h1><span data-lang-ja>{{ site_name|e }}</span><span data-lang-en>{{ site_name_en|e }}</span></h1>
  <div class="small">Generated: {{ generated_at }}</div>
  <div class="small">
    記事 {{ stats.total_articles }} 件・カテゴリ {{ stats.categories }}・平均 {{ stats.avg_read_time }} 分・直近30日 {{ stats.recent_articles_count }} 件
  </div>

  <div class="nav">
    {% for c in categories %}
    <span class="category-badge {{ c.color }}">{{ c.name_ja|e }} <span class="small">{{ c.count }}</span></span>
    {% endfor %}
  </div>

  {% if not page.items %}
  <div class="card">記事がありません</div>
  {% endif %}

  {% for a in items %}
  <article class="card">
    <span class="category-badge {{ a.category_class }}">
      <span data-lang-ja>{{ a.category_ja|e }}</span><span data-lang-en>{{ a.category_en|e }}</span>
    </span>
    {% for t in a.tech_tags %}
    <span class="tech-tag {{ t.color }} {{ t.bg_color }} {{ t.border_color }}">{{ t.name_ja|e }}</span>
    {% endfor %}
    <h2><a href="{{ nav_prefix }}articles/{{ a.slug|e }}/">
      <span data-lang-ja>{{ a.title_ja|e }}</span><span data-lang-en>{{ a.title_en|e }}</span>
    </a></h2>
    <div class="meta">{{ a.date }}・<span data-lang-ja>{{ a.read_ja }}</span><span data-lang-en>{{ a.read_en }}</span>・{{ a.author|e }}</div>
    <p><span data-lang-ja>{{ a.excerpt_ja|e }}</span><span data-lang-en>{{ a.excerpt_en|e }}</span></p>
  </article>
  {% endfor %}

  <div class="pager">
    {% if page.has_prev %}<a class="btn" href="{{ prev_href }}">← 前へ</a>{% endif %}
    <span class="small">{{ page.current_page }} / {{ page.total_pages or 1 }}</span>
    {% if page.has_next %}<a class="btn" href="{{ nav_prefix }}page/{{ page.current_page + 1 }}/">次へ →</a>{% endif %}
  </div>

  <script src="{{ common_js_src }}"></script>
</body>
</html>
"""


def _card_view(a: ArticleRecord) -> dict[str, Any]:
    return {
        "slug": a.slug,
        "title_ja": clean_for_html(a.display_title(LANG_JA)),
        "title_en": clean_for_html(a.display_title(LANG_EN)),
        "excerpt_ja": truncate_with_suffix(squash_spaces(clean_for_html(a.display_excerpt(LANG_JA))), CARD_EXCERPT_LEN),
        "excerpt_en": truncate_with_suffix(squash_spaces(clean_for_html(a.display_excerpt(LANG_EN))), CARD_EXCERPT_LEN),
        "category_ja": category_name(a.category, LANG_JA),
        "category_en": category_name(a.category, LANG_EN),
        "category_class": category_color(a.category),
        "tech_tags": sort_tech_tags(get_tech_tags(a.primary_tech_tags)),
        "date": fmt_date(a.published_at),
        "read_ja": format_read_time(a.read_time, LANG_JA),
        "read_en": format_read_time(a.read_time, LANG_EN),
        "author": clean_for_html(a.author),
    }


def _list_page_path(out_dir: Path, page_no: int) -> Path:
    if page_no == 1:
        return out_dir / "index.html"
    return out_dir / "page" / str(page_no) / "index.html"


def render_list_pages(out_dir: Path, articles: list[ArticleRecord], config: dict[str, Any], generated_at: str) -> int:
    assets = build_asset_paths(config["base_path"])
    stats = calculate_stats(articles)
    categories = [
        {"name_ja": name, "count": count, "color": category_color(name)}
        for name, count in stats["category_stats"].items()
    ]

    per_page = config["articles_per_page"]
    total_pages = max(1, paginate(articles, 1, per_page).total_pages)
    for page_no in range(1, total_pages + 1):
        page = paginate(articles, page_no, per_page)
        prev_href = assets["nav_prefix"] if page_no == 2 else f"{assets['nav_prefix']}page/{page_no - 1}/"
        html = Template(LIST_HTML).render(
            site_name=config["site_name"],
            site_name_en=config["site_name_en"],
            storage_key=config["language_storage_key"],
            generated_at=generated_at,
            stats=stats,
            categories=categories,
            page=page,
            items=[_card_view(a) for a in page.items],
            prev_href=prev_href,
            common_css_href=assets["common_css_href"],
            common_js_src=assets["common_js_src"],
            nav_prefix=assets["nav_prefix"],
        )
        path = _list_page_path(out_dir, page_no)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(html, encoding="utf-8")
    return total_pages


def render_article_pages(out_dir: Path, articles: list[ArticleRecord], config: dict[str, Any]) -> None:
    assets = build_asset_paths(config["base_path"])
    articles_dir = Path(config["articles_dir"])
    raw_dir = out_dir / "raw"
    raw_dir.mkdir(parents=True, exist_ok=True)

    for article in articles:
        # Raw表示用に元ファイルをそのままコピー
        shutil.copyfile(articles_dir / f"{article.slug}.html", raw_dir / f"{article.slug}.html")

        html = render_detail_page(
            article,
            related_articles(article, articles, limit=config["related_limit"]),
            generate_toc(article.content),
            config,
            ScriptExecutionState(),
            asset_paths=assets,
            raw_url=f"{assets['nav_prefix']}raw/{article.slug}.html",
        )
        page_dir = out_dir / "articles" / article.slug
        page_dir.mkdir(parents=True, exist_ok=True)
        (page_dir / "index.html").write_text(html, encoding="utf-8")


def write_api(out_dir: Path, articles: list[ArticleRecord], generated_at: str) -> None:
    api_dir = out_dir / "api"
    api_dir.mkdir(parents=True, exist_ok=True)
    payload = {
        "generatedAt": generated_at,
        "articles": [a.to_dict() for a in articles],
        "filters": available_filters(articles),
        "stats": calculate_stats(articles),
    }
    (api_dir / "articles.json").write_text(
        json.dumps(payload, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def write_assets(out_dir: Path) -> None:
    css_dir = out_dir / "assets" / "css"
    js_dir = out_dir / "assets" / "js"
    css_dir.mkdir(parents=True, exist_ok=True)
    js_dir.mkdir(parents=True, exist_ok=True)
    (css_dir / "common.css").write_text(COMMON_CSS.lstrip(), encoding="utf-8")
    (js_dir / "common.js").write_text(COMMON_JS.lstrip(), encoding="utf-8")


def build_site(config: dict[str, Any]) -> dict[str, int]:
    out_dir = Path(config["out_dir"])
    out_dir.mkdir(parents=True, exist_ok=True)
    generated_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    t = _now_sec()
    articles = parse_directory(config["articles_dir"], default_author=config["default_author"])
    print(f"[TIME] step=parse articles={len(articles)} sec={_now_sec() - t:.1f}")

    t = _now_sec()
    write_assets(out_dir)
    pages = render_list_pages(out_dir, articles, config, generated_at)
    render_article_pages(out_dir, articles, config)
    write_api(out_dir, articles, generated_at)
    print(f"[TIME] step=write pages={pages} articles={len(articles)} sec={_now_sec() - t:.1f}")

    return {"articles": len(articles), "pages": pages}


def main() -> int:
    parser = argparse.ArgumentParser(description="Build the static article site")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to site config yaml")
    parser.add_argument("--out-dir", default=None, help="Override output directory")
    args = parser.parse_args()

    t0 = _now_sec()
    print("[TIME] step=build start")
    config = load_site_config(args.config)
    if args.out_dir:
        config["out_dir"] = args.out_dir
    result = build_site(config)
    print(f"[OK] step=build articles={result['articles']} out_dir={config['out_dir']}")
    print(f"[TIME] step=build end sec={_now_sec() - t0:.1f}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
