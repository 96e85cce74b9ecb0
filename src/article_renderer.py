"""記事詳細ページの描画（分離表示 / Raw表示）"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Template

from article_models import (
    LANG_EN,
    LANG_JA,
    ArticleNotFoundError,
    ArticleRecord,
    category_color,
    category_name,
    format_read_time,
)
from css_namespace import DEFAULT_CONTAINER, layout_fix_css, namespace_styles
from html_segments import split_segments
from script_isolation import DEFAULT_STORAGE_KEY, ScriptExecutionState, build_execution_script
from tech_tags import get_tech_tags, sort_tech_tags
from text_clean import clean_for_html


def build_asset_paths(base_path: str = "/") -> dict[str, str]:
    """Return absolute asset paths under the site base path."""
    stripped = base_path.strip("/")
    normalized_base = f"/{stripped}/" if stripped else "/"
    return {
        "common_css_href": f"{normalized_base}assets/css/common.css",
        "common_js_src": f"{normalized_base}assets/js/common.js",
        "nav_prefix": normalized_base,
    }


@dataclass
class IsolatedArticle:
    styles: str
    body_markup: str
    script: str


def render_isolated(
    article: ArticleRecord,
    state: ScriptExecutionState,
    container: str = DEFAULT_CONTAINER,
    storage_key: str = DEFAULT_STORAGE_KEY,
) -> IsolatedArticle:
    segments = split_segments(article.content)
    styles = namespace_styles(segments.style_text, container)
    if styles:
        styles = f"{styles}\n{layout_fix_css(container)}"
    else:
        styles = layout_fix_css(container)
    script = build_execution_script(segments.script_text, article.id, state, storage_key, container)
    return IsolatedArticle(styles=styles, body_markup=segments.body_markup, script=script)


def raw_bytes(path: str | Path) -> bytes:
    """保存されている記事ファイルをそのまま返す（加工しない）。"""
    try:
        return Path(path).read_bytes()
    except FileNotFoundError as e:
        raise ArticleNotFoundError(f"Article not found: {path}") from e


DETAIL_HTML = r"""
<!doctype html>
<html lang="ja" data-lang-key="{{ storage_key|e }}">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{{ title|e }} | {{ site_name|e }}</title>
  <meta name="description" content="{{ excerpt|e }}">
  <meta name="author" content="{{ author|e }}">
  {% if keywords %}<meta name="keywords" content="{{ keywords|e }}">{% endif %}

  <meta property="og:title" content="{{ title|e }}">
  <meta property="og:description" content="{{ excerpt|e }}">
  <meta property="og:type" content="article">
  <meta property="og:url" content="{{ canonical_url|e }}">
  <meta property="og:site_name" content="{{ site_name|e }}">
  {% if featured_image %}<meta property="og:image" content="{{ featured_image|e }}">{% endif %}
  <meta property="article:published_time" content="{{ published_time }}">
  {% if modified_time %}<meta property="article:modified_time" content="{{ modified_time }}">{% endif %}
  <meta property="article:section" content="{{ category|e }}">
  <link rel="canonical" href="{{ canonical_url|e }}">
  <link rel="stylesheet" href="{{ common_css_href }}">
  <style>
{{ article_styles }}
  </style>
</head>
<body>
  <div class="nav">
    <a href="{{ nav_prefix }}">{{ site_name|e }}</a>
    <button type="button" class="lang-toggle" data-lang="ja">日本語</button>
    <button type="button" class="lang-toggle" data-lang="en">English</button>
  </div>

  <header class="article-header">
    <span class="category-badge {{ category_class }}">{{ category|e }}</span>
    <h1>{{ title|e }}</h1>
    <div class="meta">
      <time datetime="{{ published_time }}">{{ published_date }}</time>
      ・{{ read_time_label }}・{{ author|e }}
    </div>
    {% if tech_tags %}
    <div class="tech-tags">
      {% for t in tech_tags %}
      <span class="tech-tag {{ t.color }} {{ t.bg_color }} {{ t.border_color }}" title="{{ t.name_en|e }}">{{ t.name_ja|e }}</span>
      {% endfor %}
    </div>
    {% endif %}
  </header>

  <div class="view-mode">
    <button type="button" id="mode-isolated" class="active">分離表示</button>
    <button type="button" id="mode-raw">Raw表示</button>
  </div>

  <div class="article-display-container" id="isolated-view">
    <div class="{{ container_class }}">
{{ body_markup }}
    </div>
  </div>

  <div id="raw-view" style="display:none">
    <iframe src="{{ raw_url }}" title="{{ title|e }}" style="width:100%;min-height:100vh;border:0"></iframe>
  </div>

  {% if toc %}
  <nav class="toc">
    <h2>目次</h2>
    <ul>
      {% for h in toc %}
      <li class="toc-level-{{ h.level }}"><a href="#{{ h.id|e }}">{{ h.text|e }}</a></li>
      {% endfor %}
    </ul>
  </nav>
  {% endif %}

  {% if related %}
  <section class="related">
    <h2>関連記事</h2>
    <ul>
      {% for r in related %}
      <li><a href="{{ nav_prefix }}articles/{{ r.slug|e }}/">{{ r.title|e }}</a> <span class="small">{{ r.date }}</span></li>
      {% endfor %}
    </ul>
  </section>
  {% endif %}

  <script src="{{ common_js_src }}"></script>
  <script>
    (function () {
      var storageKey = {{ storage_key_json }};
      function applyLang(lang) {
        try { localStorage.setItem(storageKey, lang); } catch (e) {}
        window.currentLang = lang;
        document.body.className = lang === 'en' ? 'en' : '';
        var c = document.querySelector({{ container_json }});
        if (c) { if (lang === 'en') { c.classList.add('en'); } else { c.classList.remove('en'); } }
        if (typeof window.setLanguage === 'function') {
          try { window.setLanguage(lang); } catch (e) { console.log('[ArticleRenderer] setLanguage failed:', e); }
        }
      }
      document.querySelectorAll('.lang-toggle').forEach(function (b) {
        b.addEventListener('click', function () { applyLang(b.getAttribute('data-lang')); });
      });
      var iso = document.getElementById('isolated-view');
      var raw = document.getElementById('raw-view');
      document.getElementById('mode-isolated').addEventListener('click', function () {
        iso.style.display = ''; raw.style.display = 'none';
      });
      document.getElementById('mode-raw').addEventListener('click', function () {
        iso.style.display = 'none'; raw.style.display = '';
      });
    })();
  </script>
  {% if article_script %}
  <script>
{{ article_script }}
  </script>
  {% endif %}
</body>
</html>
"""


def _related_view(related: list[ArticleRecord]) -> list[dict[str, str]]:
    return [
        {
            "slug": r.slug,
            "title": clean_for_html(r.title),
            "date": r.published_at.strftime("%Y/%m/%d"),
        }
        for r in related
    ]


def render_detail_page(
    article: ArticleRecord,
    related: list[ArticleRecord],
    toc: list[dict[str, Any]],
    config: dict[str, Any],
    state: ScriptExecutionState,
    asset_paths: dict[str, str] | None = None,
    lang: str = LANG_JA,
    raw_url: str | None = None,
) -> str:
    container = config.get("container_selector") or DEFAULT_CONTAINER
    storage_key = config.get("language_storage_key") or DEFAULT_STORAGE_KEY
    isolated = render_isolated(article, state, container, storage_key)

    assets = asset_paths or build_asset_paths(config.get("base_path") or "/")

    # ".article-content" → class="article-content"
    container_class = container.lstrip(".") if container.startswith(".") else "article-content"
    site_name = config.get("site_name_en") if lang == LANG_EN else config.get("site_name")

    return Template(DETAIL_HTML).render(
        title=clean_for_html(article.display_title(lang)),
        excerpt=clean_for_html(article.display_excerpt(lang)),
        author=clean_for_html(article.author),
        keywords=", ".join(article.tags),
        site_name=site_name or "",
        canonical_url=f"{assets['nav_prefix']}articles/{article.slug}/",
        featured_image=article.featured_image,
        published_time=article.published_at.isoformat(),
        published_date=article.published_at.strftime("%Y/%m/%d"),
        modified_time=article.last_modified.isoformat() if article.last_modified else "",
        category=category_name(article.category, lang),
        category_class=category_color(article.category),
        read_time_label=format_read_time(article.read_time, lang),
        tech_tags=sort_tech_tags(get_tech_tags(article.primary_tech_tags)),
        article_styles=isolated.styles,
        container_class=container_class,
        body_markup=isolated.body_markup,
        raw_url=raw_url or f"{assets['nav_prefix']}raw/{article.slug}",
        toc=toc,
        related=_related_view(related),
        storage_key=storage_key,
        storage_key_json=_json(storage_key),
        container_json=_json(container),
        article_script=isolated.script,
        common_css_href=assets["common_css_href"],
        common_js_src=assets["common_js_src"],
        nav_prefix=assets["nav_prefix"],
    )


def _json(value: str) -> str:
    return json.dumps(value, ensure_ascii=False).replace("</", "<\\/")
