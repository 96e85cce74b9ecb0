"""記事内インラインスクリプトの書き換えと、1記事1回だけ実行するためのブートストラップ生成。

記事スクリプトはホストページと同じグローバル空間で動くため、よく衝突する
`currentLang` / `observer` / `setLanguage(lang)` を書き換えてから注入する。
"""
from __future__ import annotations

import json
import re

from jinja2 import Template

DEFAULT_STORAGE_KEY = "defense-intel-language"
DEFAULT_CONTAINER = ".article-content"
LANGUAGE_SYNC_DELAY_MS = 300

# let currentLang = 'ja'; はホスト側が window.currentLang を持つので丸ごと消す
_CURRENT_LANG_LITERAL_DECL_RE = re.compile(
    r"\b(?:let|const|var)\s+currentLang\s*=\s*['\"](?:ja|en)['\"]\s*;?"
)
_CURRENT_LANG_EMPTY_DECL_RE = re.compile(r"\b(?:let|const|var)\s+currentLang\s*;")
_CURRENT_LANG_DECL_RE = re.compile(r"\b(?:let|const|var)\s+currentLang\b")
# `==` / `=>` は代入ではない
_CURRENT_LANG_ASSIGN_RE = re.compile(r"(?<![\w.$])currentLang(?=\s*=(?![=>]))")

_OBSERVER_DECL_RE = re.compile(r"\b(?:let|const|var)\s+observer\s*=(?![=>])")
_OBSERVER_ASSIGN_RE = re.compile(r"(?<![\w.$])observer\s*=(?![=>])")

_SET_LANGUAGE_SIG_RE = re.compile(r"function\s+setLanguage\s*\(\s*([A-Za-z_$][\w$]*)\s*\)\s*\{")
_EVENT_TARGET_RE = re.compile(r"(?<![\w.$])event\.target\b")
EVENT_TARGET_GUARD = "(event && event.target ? event.target : document.activeElement)"


def rewrite_script(script_text: str) -> str:
    """ホストページと衝突しやすい書き方を名前空間付きグローバルへ寄せる。

    - currentLang の宣言は削除（初期値付きの宣言は代入に変換）し、代入は window.currentLang へ
    - observer の宣言・代入は window.observer へ（複数記事での再宣言エラー回避）
    - setLanguage(lang) に省略可能な event 引数を追加
    - event.target はイベント無しで呼ばれた時に document.activeElement へフォールバック

    宣言が無くなるので、素の `currentLang` 参照はグローバルの window.currentLang に解決される。
    2回適用しても結果は変わらない。
    """
    if not script_text:
        return ""
    out = _CURRENT_LANG_LITERAL_DECL_RE.sub("", script_text)
    out = _CURRENT_LANG_EMPTY_DECL_RE.sub("", out)
    out = _CURRENT_LANG_DECL_RE.sub("window.currentLang", out)
    out = _CURRENT_LANG_ASSIGN_RE.sub("window.currentLang", out)

    out = _OBSERVER_DECL_RE.sub("window.observer =", out)
    out = _OBSERVER_ASSIGN_RE.sub("window.observer =", out)

    out = _SET_LANGUAGE_SIG_RE.sub(lambda m: f"function setLanguage({m.group(1)}, event) {{", out)
    # 置換済みのガードは分割で除外して再置換しない
    pieces = out.split(EVENT_TARGET_GUARD)
    out = EVENT_TARGET_GUARD.join(_EVENT_TARGET_RE.sub(EVENT_TARGET_GUARD, p) for p in pieces)
    return out


class ScriptExecutionState:
    """1ページ分の「どの記事のスクリプトを既に出力したか」を持つ。

    グローバル変数ではなく、レンダラに明示的に渡す。
    """

    def __init__(self):
        self._executed: set[str] = set()

    def claim(self, article_id: str) -> bool:
        if article_id in self._executed:
            return False
        self._executed.add(article_id)
        return True

    def is_executed(self, article_id: str) -> bool:
        return article_id in self._executed

    def reset(self, article_id: str) -> None:
        self._executed.discard(article_id)


BOOTSTRAP_JS = r"""
(function () {
  var articleId = {{ article_id_json }};
  var flags = window.__articleScriptExecuted = window.__articleScriptExecuted || {};
  if (flags[articleId]) {
    console.log('[ArticleRenderer] Scripts already executed for ' + articleId);
    return;
  }
  try {
    var storedLang = 'ja';
    try { storedLang = localStorage.getItem({{ storage_key_json }}) || 'ja'; } catch (e) {}
    window.currentLang = storedLang;

    var el = document.createElement('script');
    el.textContent = 'try {\n' + {{ script_json }} + '\n} catch (e) { console.error("[ArticleRenderer] Article script failed:", e); }';
    el.setAttribute('data-article-script', articleId);
    document.body.appendChild(el);
    flags[articleId] = true;

    setTimeout(function () {
      document.body.className = storedLang === 'en' ? 'en' : '';
      var container = document.querySelector({{ container_json }});
      if (container) {
        if (storedLang === 'en') { container.classList.add('en'); } else { container.classList.remove('en'); }
      }
      if (typeof window.setLang === 'function') {
        try { window.setLang(storedLang); } catch (e) { console.log('[ArticleRenderer] setLang failed:', e); }
      }
      if (typeof window.setLanguage === 'function') {
        var mockEvent = {
          target: { textContent: storedLang === 'ja' ? '日本語' : 'English', classList: { add: function () {}, remove: function () {} } },
          preventDefault: function () {}
        };
        try {
          window.setLanguage(storedLang, mockEvent);
        } catch (e) {
          try { window.setLanguage(storedLang); } catch (e2) { console.log('[ArticleRenderer] setLanguage failed:', e2); }
        }
      }
    }, {{ delay_ms }});
  } catch (e) {
    console.error('[ArticleRenderer] Script execution failed:', e);
  }
})();
"""


def build_execution_script(
    script_text: str,
    article_id: str,
    state: ScriptExecutionState,
    storage_key: str = DEFAULT_STORAGE_KEY,
    container: str = DEFAULT_CONTAINER,
) -> str:
    """記事スクリプトを1回だけ実行するブートストラップJSを返す。

    スクリプトが空、またはこのページで出力済みなら空文字。書き換え中の失敗も
    空文字にしてページ表示は続ける（Raw表示で確認できる）。
    """
    if not script_text or not script_text.strip():
        return ""
    if not state.claim(article_id):
        print(f"[WARN] step=script article={article_id} already executed on this page; skipped")
        return ""
    try:
        rewritten = rewrite_script(script_text)
        return Template(BOOTSTRAP_JS).render(
            article_id_json=_js_literal(article_id),
            storage_key_json=_js_literal(storage_key),
            container_json=_js_literal(container),
            script_json=_js_literal(rewritten),
            delay_ms=LANGUAGE_SYNC_DELAY_MS,
        )
    except (re.error, TypeError, ValueError) as e:
        print(f"[WARN] step=script article={article_id} err={e}")
        state.reset(article_id)
        return ""


def _js_literal(value: str) -> str:
    # </script> で外側のタグが閉じないようにする
    return json.dumps(value, ensure_ascii=False).replace("</", "<\\/")
