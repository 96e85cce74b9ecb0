from __future__ import annotations

import html
import re
import unicodedata

_INVISIBLE_RE = re.compile(r"[\u200B\u200C\u200D\uFEFF]")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_SPACE_RE = re.compile(r"\s+")


def clean_text(value: str | None) -> str:
    if value is None:
        return ""
    text = unicodedata.normalize("NFKC", str(value))
    text = _INVISIBLE_RE.sub("", text)
    text = _CONTROL_RE.sub("", text)
    return text


def clean_for_html(value: str | None) -> str:
    if value is None:
        return ""
    # Avoid double-escape patterns like &amp;amp; by unescaping once before render-time escaping.
    return clean_text(html.unescape(str(value)))


def squash_spaces(value: str | None) -> str:
    """連続する空白・改行を1つの空白にまとめる（カード表示用）"""
    if not value:
        return ""
    return _SPACE_RE.sub(" ", value).strip()


def truncate(value: str | None, max_len: int = 200) -> str:
    # 抽出系は元の文字数で切る（末尾に "..." は付けない）
    if not value:
        return ""
    return value[:max_len]


def truncate_with_suffix(value: str | None, max_len: int, suffix: str = "...") -> str:
    if not value:
        return ""
    if len(value) <= max_len:
        return value
    return value[: max_len - len(suffix)] + suffix
