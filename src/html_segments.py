from __future__ import annotations

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, Doctype, ParserRejectedMarkup

# <style> / <style media="..."> の両方を拾う
STYLE_BLOCK_RE = re.compile(r"<style\b[^>]*>([\s\S]*?)</style\s*>", re.IGNORECASE)
_FIRST_TAG_RE = re.compile(r"<[a-zA-Z]")
_MARGIN0_RE = re.compile(r"margin\s*:\s*0")
_PADDING0_RE = re.compile(r"padding\s*:\s*0")

NON_EXECUTABLE_SCRIPT_TYPES = {"application/json", "application/ld+json"}
# <body> が無い文書で head 外に置かれがちな要素
HEAD_ONLY_TAGS = ["title", "meta", "link", "base"]


@dataclass
class Segments:
    style_text: str
    script_text: str
    body_markup: str

    def reassemble(self) -> str:
        parts = []
        if self.style_text:
            parts.append(f"<style>{self.style_text}</style>")
        if self.script_text:
            parts.append(f"<script>{self.script_text}</script>")
        parts.append(self.body_markup)
        return "\n".join(parts)


def make_soup(html: str) -> BeautifulSoup:
    """html.parser で解析する。パーサが拒否した文書は空の木として扱う（呼び出し側は既定値に落ちる）。"""
    try:
        return BeautifulSoup(html or "", "html.parser")
    except ParserRejectedMarkup as e:
        print(f"[WARN] step=parse html rejected by parser err={e}")
        return BeautifulSoup("", "html.parser")


def _collect_styles(soup: BeautifulSoup) -> list[str]:
    chunks = []
    for style in soup.find_all("style"):
        text = style.get_text()
        if text.strip():
            chunks.append(text)
        style.decompose()
    return chunks


def _collect_scripts(soup: BeautifulSoup) -> list[str]:
    """インラインかつ JSON 以外の script だけ実行対象。script 要素自体はすべて本文から外す。"""
    chunks = []
    for script in soup.find_all("script"):
        script_type = (script.get("type") or "").strip().lower()
        if not script.get("src") and script_type not in NON_EXECUTABLE_SCRIPT_TYPES:
            text = script.get_text()
            if text.strip():
                chunks.append(text)
        script.decompose()
    return chunks


def _looks_like_leaked_css(markup: str) -> bool:
    if markup.lstrip().startswith("* {"):
        return True
    return bool(_MARGIN0_RE.search(markup) and _PADDING0_RE.search(markup) and "<" not in markup)


def _body_markup(soup: BeautifulSoup) -> str:
    if soup.body is not None:
        markup = soup.body.decode_contents()
        if _looks_like_leaked_css(markup):
            print("[WARN] step=split raw css text found in body; slicing from first tag")
            first = _FIRST_TAG_RE.search(markup)
            if first and first.start() > 0:
                markup = markup[first.start():]
            else:
                children = [str(c) for c in soup.body.find_all(recursive=False)]
                if children:
                    markup = "".join(children)
        return markup

    # body が無い: head を落として残り全体を本文とみなす
    if soup.head is not None:
        soup.head.decompose()
    for tag in soup.find_all(HEAD_ONLY_TAGS):
        tag.decompose()
    for node in list(soup.contents):
        if isinstance(node, Doctype):
            node.extract()
    root = soup.html if soup.html is not None else soup
    return root.decode_contents()


def split_segments(html: str) -> Segments:
    """記事HTMLを style / script / body の3つに分ける。

    style は構造解析で拾い、1つも見つからなければ生テキストを正規表現で走査する。
    どちらの経路でも body_markup に <style> / <script> は残らない。
    """
    html = html or ""
    soup = make_soup(html)

    styles = _collect_styles(soup)
    scripts = _collect_scripts(soup)
    body = _body_markup(soup)

    if not styles:
        styles = [m.group(1) for m in STYLE_BLOCK_RE.finditer(html) if m.group(1).strip()]
        if styles:
            body = STYLE_BLOCK_RE.sub("", body)

    return Segments(
        style_text="\n".join(styles),
        script_text="\n".join(scripts),
        body_markup=body,
    )
