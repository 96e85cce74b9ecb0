"""記事CSSをコンテナ配下に閉じ込める（正規表現ベースの近似変換）。

セレクタを構文解析しているわけではないので、文字列リテラルやコメント内の
`html` / `body` も置換対象になる。複合セレクタ（`html body .x` 等）との衝突は
既知の制約として扱う。
"""
from __future__ import annotations

import re

from jinja2 import Template

DEFAULT_CONTAINER = ".article-content"
DISABLED_LANGUAGE_CSS = "/* Disabled language CSS */"

_LEADING_STAR_RE = re.compile(r"^[ \t]*\*", re.MULTILINE)
_HTML_TOKEN_RE = re.compile(r"\bhtml\b")
# tbody / .body / #body は対象外
_BODY_RULE_RE = re.compile(r"(?<![\w.#-])body\s*\{([^}]*)\}")
# ルール単位で走査する。孤立した波括弧と末尾の残りも1回で消費するので線形
_RULE_RE = re.compile(r"([^{}]*)(\{[^{}]*\}|[{}]|\Z)")
# [lang="ja"] / [lang="en"] を display:none で隠すルール（記事側の言語切替）
_LANG_SELECTOR_RE = re.compile(r"\[lang=[\"']?(?:ja|en)[\"']?\]\s*\Z")
_DISPLAY_NONE_RE = re.compile(r"display\s*:\s*none")

BODY_BREAKOUT = """
{c} {{{decls}}}
{c} {{
  min-height: 100vh;
  width: 100vw;
  margin-left: calc(-50vw + 50%);
  margin-right: calc(-50vw + 50%);
  display: block;
  position: relative;
  box-sizing: border-box;
}}"""

LAYOUT_FIX_CSS = r"""
.article-display-container {{ c }} {
  margin: 0 !important;
  padding: 0 !important;
  width: 100% !important;
  min-height: 100vh !important;
  box-sizing: border-box !important;
}
.article-display-container {
  margin: 0 !important;
  padding: 0 !important;
  width: 100vw !important;
  max-width: none !important;
  margin-left: calc(-50vw + 50%) !important;
  margin-right: calc(-50vw + 50%) !important;
}
body { overflow-x: hidden; }

/* 記事内の言語切替ボタンは縮小表示（機能は維持） */
{{ c }} .language-switcher,
{{ c }} .lang-toggle,
{{ c }} .language-toggle,
{{ c }} .lang {
  position: fixed !important;
  top: 10px !important;
  right: 10px !important;
  z-index: 100 !important;
  transform: scale(0.6) !important;
  opacity: 0.7 !important;
  background: rgba(255, 255, 255, 0.95) !important;
  border-radius: 8px !important;
  padding: 4px !important;
}
{{ c }} .lang-btn.active { background: #007bff !important; color: white !important; }

/* 言語表示はホスト側の .en クラスで切り替える */
{{ c }} [lang="en"] { display: none !important; }
{{ c }} [lang="ja"] { display: block !important; }
{{ c }}.en [lang="ja"],
body.en {{ c }} [lang="ja"] { display: none !important; }
{{ c }}.en [lang="en"],
body.en {{ c }} [lang="en"] { display: block !important; }

@media (max-width: 768px) {
  {{ c }} .language-switcher,
  {{ c }} .lang-toggle,
  {{ c }} .lang {
    top: 5px !important;
    right: 5px !important;
  }
}
"""


def namespace_styles(css: str, container: str = DEFAULT_CONTAINER) -> str:
    if not css:
        return ""

    out = _LEADING_STAR_RE.sub(f"{container} *", css)
    out = _HTML_TOKEN_RE.sub(container, out)
    out = _BODY_RULE_RE.sub(
        lambda m: BODY_BREAKOUT.format(c=container, decls=m.group(1)),
        out,
    )
    return _RULE_RE.sub(_disable_language_rule, out)


def _disable_language_rule(m: re.Match) -> str:
    selector, block = m.group(1), m.group(2)
    if len(block) < 2 or not _LANG_SELECTOR_RE.search(selector) or not _DISPLAY_NONE_RE.search(block):
        return m.group(0)
    lead = selector[: len(selector) - len(selector.lstrip())]
    return lead + DISABLED_LANGUAGE_CSS


def layout_fix_css(container: str = DEFAULT_CONTAINER) -> str:
    return Template(LAYOUT_FIX_CSS).render(c=container)
