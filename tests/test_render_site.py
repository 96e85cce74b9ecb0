import json
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import render_site
from site_config import DEFAULT_SITE_CONFIG

ARTICLE_A = """<html><head><title>サイバー防衛の動向</title>
<style>body { margin: 0; } [lang="en"] { display: none; }</style></head>
<body><p lang="ja">日本語本文</p><p lang="en">English body</p>
<script>let currentLang = 'ja'; function setLanguage(lang) { currentLang = lang; }</script>
</body></html>"""

ARTICLE_B = "<title>Golden Dome Analysis</title><p>The golden dome plan.</p>"


def _config(tmp_path, **overrides):
    articles_dir = tmp_path / "pub" / "articles"
    articles_dir.mkdir(parents=True)
    (articles_dir / "2025-08-20-cyber-trend.html").write_text(ARTICLE_A, encoding="utf-8")
    (articles_dir / "2025-08-24-golden-dome-analysis.html").write_text(ARTICLE_B, encoding="utf-8")
    cfg = dict(DEFAULT_SITE_CONFIG, articles_dir=str(articles_dir), out_dir=str(tmp_path / "docs"))
    cfg.update(overrides)
    return cfg


def test_build_site_writes_pages_raw_copies_and_api(tmp_path, capsys):
    cfg = _config(tmp_path)
    result = render_site.build_site(cfg)
    out = Path(cfg["out_dir"])

    assert result == {"articles": 2, "pages": 1}
    assert (out / "index.html").exists()
    assert (out / "assets" / "css" / "common.css").exists()
    assert (out / "assets" / "js" / "common.js").exists()

    detail = (out / "articles" / "2025-08-20-cyber-trend" / "index.html").read_text(encoding="utf-8")
    assert "window.__articleScriptExecuted" in detail
    assert "/* Disabled language CSS */" in detail
    assert '<iframe src="/raw/2025-08-20-cyber-trend.html"' in detail

    raw = out / "raw" / "2025-08-20-cyber-trend.html"
    assert raw.read_bytes() == (Path(cfg["articles_dir"]) / "2025-08-20-cyber-trend.html").read_bytes()

    api = json.loads((out / "api" / "articles.json").read_text(encoding="utf-8"))
    assert [a["slug"] for a in api["articles"]] == ["2025-08-24-golden-dome-analysis", "2025-08-20-cyber-trend"]
    assert "content" not in api["articles"][0]
    assert api["articles"][0]["primary_tech_tags"] == ["iamd", "golden_dome", "missile_defense"]
    assert api["stats"]["total_articles"] == 2

    logs = capsys.readouterr().out
    assert "[TIME] step=parse articles=2" in logs
    assert "[TIME] step=write" in logs


def test_list_page_shows_newest_first(tmp_path):
    cfg = _config(tmp_path)
    render_site.build_site(cfg)
    index = (Path(cfg["out_dir"]) / "index.html").read_text(encoding="utf-8")

    assert index.index("Golden Dome Analysis") < index.index("サイバー防衛の動向")
    assert 'href="/articles/2025-08-24-golden-dome-analysis/"' in index


def test_pagination_writes_extra_pages(tmp_path):
    cfg = _config(tmp_path, articles_per_page=1)
    result = render_site.build_site(cfg)
    out = Path(cfg["out_dir"])

    assert result["pages"] == 2
    page2 = (out / "page" / "2" / "index.html").read_text(encoding="utf-8")
    assert "サイバー防衛の動向" in page2
    assert 'href="/"' in page2


def test_empty_articles_dir_still_builds_index(tmp_path, capsys):
    cfg = dict(DEFAULT_SITE_CONFIG, articles_dir=str(tmp_path / "missing"), out_dir=str(tmp_path / "docs"))
    result = render_site.build_site(cfg)

    assert result == {"articles": 0, "pages": 1}
    assert "記事がありません" in (tmp_path / "docs" / "index.html").read_text(encoding="utf-8")
    assert "[WARN] step=parse" in capsys.readouterr().out


def test_main_uses_config_file(tmp_path, monkeypatch, capsys):
    cfg = _config(tmp_path)
    config_path = tmp_path / "site.yaml"
    config_path.write_text(f"articles_dir: {cfg['articles_dir']}\n", encoding="utf-8")
    out_dir = tmp_path / "site-out"
    monkeypatch.setattr(sys, "argv", ["render_site.py", "--config", str(config_path), "--out-dir", str(out_dir)])

    assert render_site.main() == 0
    assert (out_dir / "index.html").exists()
    logs = capsys.readouterr().out
    assert "[TIME] step=build start" in logs
    assert "[OK] step=build articles=2" in logs
