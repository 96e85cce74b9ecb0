from datetime import datetime, timezone
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import article_parser
from article_models import (
    CATEGORY_ANALYSIS,
    CATEGORY_CYBER_SECURITY,
    CATEGORY_DASHBOARD,
    CATEGORY_OTHER,
    CATEGORY_TECHNOLOGY,
    DEFAULT_AUTHOR,
    UNTITLED,
    ArticleNotFoundError,
)
from article_parser import (
    create_article_from_file,
    extract,
    extract_date_from_filename,
    generate_toc,
    infer_category,
    is_valid_image_url,
    load_article,
    parse_directory,
    resolve_image_url,
)

FIXED_NOW = datetime(2025, 9, 1, 3, 0, tzinfo=timezone.utc)

GOLDEN_DOME_HTML = (
    "<html><head><title>Golden Dome Analysis</title>"
    '<meta name="description" content="米国のゴールデン・ドーム構想を整理する。">'
    '<meta name="keywords" content="ミサイル防衛, 米国 , ,宇宙">'
    '<meta property="og:image" content="https://cdn.example.com/og.png">'
    "<style>body { margin: 0; }</style></head>"
    "<body><h1 id=\"top\">ゴールデン・ドーム</h1><p>米国のミサイル防衛構想について分析する。</p>"
    '<img src="./images/dome.jpg"><script>let currentLang = "ja";</script></body></html>'
)


def test_golden_dome_article_gets_missile_defense_tech_tags_but_keeps_keyword_category():
    article = extract(GOLDEN_DOME_HTML, "2025-08-24-golden-dome-analysis.html", now=FIXED_NOW)

    assert article.slug == "2025-08-24-golden-dome-analysis"
    assert article.id == article.slug
    assert {"golden_dome", "missile_defense", "iamd"} <= set(article.tech_tags)
    assert article.primary_tech_tags == ["iamd", "golden_dome", "missile_defense"]
    # カテゴリは技術タグではなくキーワード表だけで決まる
    assert article.category == CATEGORY_ANALYSIS


def test_date_prefix_is_fixed_at_15_utc():
    article = extract(GOLDEN_DOME_HTML, "2025-08-24-golden-dome-analysis.html", now=FIXED_NOW)
    assert article.published_at == datetime(2025, 8, 24, 15, 0, tzinfo=timezone.utc)


def test_filename_without_date_prefix_still_parses_with_current_time():
    article = extract("<title>My article</title><p>hello</p>", "my-article.html", now=FIXED_NOW)
    assert article.slug == "my-article"
    assert article.published_at == FIXED_NOW


def test_impossible_date_prefix_falls_back_to_now(capsys):
    assert extract_date_from_filename("2025-13-40-x.html", now=FIXED_NOW) == FIXED_NOW
    assert "invalid date prefix" in capsys.readouterr().out


def test_title_falls_back_to_h1_then_untitled():
    assert extract("<h1>見出し</h1>", "a.html").title == "見出し"
    assert extract("<title>  </title><p>x</p>", "a.html").title == UNTITLED
    assert extract("", "a.html").title == UNTITLED


def test_category_priority_order_is_preserved():
    # dashboard は ai より先に判定される
    assert infer_category("2025-01-01-ai-dashboard", "") == CATEGORY_DASHBOARD
    assert infer_category("2025-01-01-ai-cyber", "") == CATEGORY_TECHNOLOGY
    assert infer_category("2025-01-01-cyber-report", "") == CATEGORY_CYBER_SECURITY
    assert infer_category("2025-01-01-x", "メモ") == CATEGORY_OTHER


def test_excerpt_prefers_meta_description_then_first_paragraph():
    article = extract(GOLDEN_DOME_HTML, "2025-08-24-golden-dome-analysis.html")
    assert article.excerpt == "米国のゴールデン・ドーム構想を整理する。"

    long_p = "<p>" + "あ" * 300 + "</p>"
    assert extract(long_p, "a.html").excerpt == "あ" * 200


def test_tags_merge_meta_keywords_and_fixed_vocabulary():
    html = '<title>AI 技術レポート</title><meta name="keywords" content="防衛, AI">'
    article = extract(html, "2025-01-01-report.html")
    assert article.tags == ["防衛", "AI", "技術", "レポート"]

    many = ",".join(f"k{i}" for i in range(20))
    assert len(extract(f'<meta name="keywords" content="{many}">', "a.html").tags) == 10


def test_keyword_tags_skip_empty_entries():
    article = extract(GOLDEN_DOME_HTML, "2025-08-24-golden-dome-analysis.html")
    assert article.tags == ["ミサイル防衛", "米国", "宇宙"]


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://a.example/x.png", "https://a.example/x.png"),
        ("//cdn.example/x.png", "https://cdn.example/x.png"),
        ("./img/x.png", "/articles/img/x.png"),
        ("/static/x.png", "/static/x.png"),
        ("img/x.png", "/articles/img/x.png"),
    ],
)
def test_resolve_image_url(url, expected):
    assert resolve_image_url(url) == expected


def test_image_validity_heuristic():
    assert is_valid_image_url("a.webp?v=2")
    assert is_valid_image_url("https://x.example/photo/123")
    assert not is_valid_image_url("data:image/png;base64,AAAA")
    assert not is_valid_image_url("https://x.example/page.html")
    assert not is_valid_image_url("")


def test_images_include_background_images_and_skip_data_urls():
    html = (
        '<div style="background-image: url(\'bg/hero.jpg\')"></div>'
        '<img src="data:image/png;base64,AAAA"><img src="//cdn.example/a.png"><img src="//cdn.example/a.png">'
    )
    article = extract(html, "a.html")
    assert article.images == ["https://cdn.example/a.png", "/articles/bg/hero.jpg"]


def test_featured_image_priority():
    article = extract(GOLDEN_DOME_HTML, "2025-08-24-golden-dome-analysis.html")
    assert article.featured_image == "https://cdn.example.com/og.png"

    html = '<meta name="twitter:image" content="/tw.jpg"><img src="./first.png">'
    assert extract(html, "a.html").featured_image == "/tw.jpg"
    assert extract('<img src="./first.png">', "a.html").featured_image == "/articles/first.png"
    assert extract("<p>no image</p>", "a.html").featured_image is None


def test_language_ratio_heuristics():
    ja = extract("<body><p>これは日本語の記事です</p></body>", "a.html")
    assert ja.content_languages == ["ja"]
    assert ja.title_ja == UNTITLED

    en = extract("<title>Hello</title><body><p>Hello world this is English</p></body>", "a.html")
    assert en.content_languages == ["en"]
    assert en.title_en == "Hello"
    assert en.excerpt_en == "Hello world this is English"

    both = extract("<body><p>日本語 English</p></body>", "a.html")
    assert both.content_languages == ["both"]


def test_script_and_style_text_do_not_count_as_body_text():
    html = "<body><p>日本語です</p><script>var englishOnlyCodeHereForTesting = 1;</script><style>.x{}</style></body>"
    article = extract(html, "a.html")
    assert article.content_languages == ["ja"]
    assert article.word_count == len("日本語です")


def test_explicit_language_meta_overrides_heuristics():
    html = (
        '<meta name="article:languages" content="ja,en">'
        '<meta name="title:en" content="English title">'
        '<meta name="description:ja" content="日本語の概要">'
        "<body><p>これは日本語の記事です</p></body>"
    )
    article = extract(html, "a.html")
    assert article.content_languages == ["both"]
    assert article.title_en == "English title"
    assert article.excerpt_ja == "日本語の概要"


def test_declared_language_used_when_ratios_detect_nothing():
    assert extract('<html lang="en"><body>12345</body></html>', "a.html").content_languages == ["en"]
    assert extract('<html lang="ja-JP"><body>12345</body></html>', "a.html").content_languages == ["ja"]
    assert extract("<body>12345</body>", "a.html").content_languages == ["both"]


def test_read_time_and_word_count():
    article = extract("<body><p>" + "字" * 1000 + "</p></body>", "a.html")
    assert article.word_count == 1000
    assert article.read_time == 5
    assert extract("<p>短い</p>", "a.html").read_time == 1


def test_author_falls_back_to_default():
    assert extract("<p>x</p>", "a.html").author == DEFAULT_AUTHOR
    assert extract('<meta name="author" content="山田">', "a.html").author == "山田"


def test_content_keeps_original_html():
    article = extract(GOLDEN_DOME_HTML, "2025-08-24-golden-dome-analysis.html")
    assert article.content == GOLDEN_DOME_HTML


def test_generate_toc_uses_ids_or_index():
    toc = generate_toc("<h1 id='top'>A</h1><h2>B</h2><h3> </h3>")
    assert toc == [
        {"level": 1, "text": "A", "id": "top"},
        {"level": 2, "text": "B", "id": "heading-1"},
    ]


def test_create_article_from_file_reads_mtime(tmp_path):
    path = tmp_path / "2025-08-24-golden-dome-analysis.html"
    path.write_text(GOLDEN_DOME_HTML, encoding="utf-8")

    article = create_article_from_file(path)
    assert article.title == "Golden Dome Analysis"
    assert article.last_modified is not None
    assert article.last_modified.tzinfo is not None


def test_create_article_from_missing_file_raises_not_found(tmp_path):
    with pytest.raises(ArticleNotFoundError):
        create_article_from_file(tmp_path / "missing.html")


def test_parse_directory_sorts_newest_first_and_ignores_other_files(tmp_path):
    (tmp_path / "2025-01-01-old.html").write_text("<title>old</title>", encoding="utf-8")
    (tmp_path / "2025-06-01-new.html").write_text("<title>new</title>", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    articles = parse_directory(tmp_path)
    assert [a.slug for a in articles] == ["2025-06-01-new", "2025-01-01-old"]


def test_parse_directory_logs_and_skips_failing_file(tmp_path, monkeypatch, capsys):
    (tmp_path / "2025-01-01-good.html").write_text("<title>good</title>", encoding="utf-8")
    (tmp_path / "2025-01-02-bad.html").write_text("<title>bad</title>", encoding="utf-8")

    real = article_parser.create_article_from_file

    def flaky(path, default_author=DEFAULT_AUTHOR):
        if "bad" in Path(path).name:
            raise ValueError("broken markup")
        return real(path, default_author=default_author)

    monkeypatch.setattr(article_parser, "create_article_from_file", flaky)

    articles = parse_directory(tmp_path)
    assert [a.slug for a in articles] == ["2025-01-01-good"]
    out = capsys.readouterr().out
    assert "file=2025-01-02-bad.html" in out
    assert "broken markup" in out


def test_parse_directory_missing_dir_returns_empty(tmp_path, capsys):
    assert parse_directory(tmp_path / "nope") == []
    assert "[WARN]" in capsys.readouterr().out


def test_load_article_rejects_path_traversal(tmp_path):
    (tmp_path / "2025-01-01-a.html").write_text("<title>a</title>", encoding="utf-8")
    assert load_article(tmp_path, "2025-01-01-a").title == "a"
    with pytest.raises(ArticleNotFoundError):
        load_article(tmp_path, "../2025-01-01-a")
    with pytest.raises(ArticleNotFoundError):
        load_article(tmp_path, "2025-01-01-missing")
