from __future__ import annotations

import argparse
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from site_config import DEFAULT_CONFIG_PATH, load_site_config

FILENAME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}-[a-z0-9-]+\.html$")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
TITLE_RE = re.compile(r"<title[^>]*>(.+?)</title>", re.IGNORECASE)
UNKNOWN_TITLE = "タイトル不明"

# 記事はホストページと同じ window で動くため、通信・遷移・cookie 系は受け付けない
DANGEROUS_PATTERNS = [
    ("external-script", re.compile(r"<script[^>]*src=[\"']https?://[^\"']*[\"'][^>]*>", re.IGNORECASE), "外部スクリプトファイル"),
    ("eval", re.compile(r"eval\s*\(", re.IGNORECASE), "eval関数の使用"),
    ("cookie", re.compile(r"document\.cookie", re.IGNORECASE), "クッキー操作"),
    ("redirect", re.compile(r"window\.location\.href\s*=", re.IGNORECASE), "リダイレクト処理"),
    ("inner-html", re.compile(r"innerHTML\s*=\s*[^;]*<", re.IGNORECASE), "動的HTML挿入"),
    ("network", re.compile(r"xhr\.|XMLHttpRequest|fetch\(", re.IGNORECASE), "HTTP通信機能"),
]

STRUCTURE_CHECKS = {
    "hasTitle": re.compile(r"<title[^>]*>(.+?)</title>", re.IGNORECASE),
    "hasBody": re.compile(r"<body[^>]*>[\s\S]*</body>", re.IGNORECASE),
    "hasStyles": re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE),
    "hasScripts": re.compile(r"<script(?![^>]*src=)[^>]*>[\s\S]*?</script>", re.IGNORECASE),
    "hasExternalCSS": re.compile(r"<link[^>]*rel=[\"']stylesheet[\"'][^>]*>", re.IGNORECASE),
}


@dataclass(frozen=True)
class UploadIssue:
    severity: str
    code: str
    message: str
    # API で返すステータス（名前衝突だけ 409）
    status: int = 400


class UploadRejected(Exception):
    def __init__(self, issues: list[UploadIssue]):
        self.issues = issues
        super().__init__("; ".join(f"{i.code}: {i.message}" for i in issues))

    @property
    def status(self) -> int:
        # 409 は名前衝突だけが理由のときに限る
        statuses = {i.status for i in self.issues}
        if statuses == {409}:
            return 409
        return 400


@dataclass
class UploadResult:
    filename: str
    slug: str
    title: str
    size: int
    url: str
    uploaded_at: datetime
    structure: dict[str, bool] = field(default_factory=dict)
    quality_score: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "title": self.title,
            "slug": self.slug,
            "size": self.size,
            "url": self.url,
            "uploadedAt": self.uploaded_at.isoformat(),
            "htmlStructure": self.structure,
            "qualityScore": self.quality_score,
        }


def _decode(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def analyze_structure(content: bytes | str) -> dict[str, bool]:
    text = content if isinstance(content, str) else _decode(content)
    return {name: bool(pattern.search(text)) for name, pattern in STRUCTURE_CHECKS.items()}


def quality_score(structure: dict[str, bool]) -> int:
    return sum(1 for ok in structure.values() if ok)


def validate_upload(
    file_name: str,
    content: bytes,
    articles_dir: str | Path | None = None,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> list[UploadIssue]:
    """アップロード前の検査。問題が無ければ空リスト。

    拡張子とファイル名形式の違反はその時点で打ち切る（中身を見る意味がない）。
    それ以外は全部まとめて返す。
    """
    issues: list[UploadIssue] = []

    if not file_name.endswith(".html"):
        return [UploadIssue("error", "not-html", f"HTMLファイルのみアップロード可能です: {file_name}")]
    if not FILENAME_RE.match(file_name):
        return [
            UploadIssue(
                "error",
                "bad-filename",
                f"ファイル名は YYYY-MM-DD-slug.html 形式にしてください (例: 2025-08-24-my-article.html): {file_name}",
            )
        ]

    if len(content) > max_bytes:
        issues.append(UploadIssue("error", "too-large", f"ファイルサイズは{max_bytes // (1024 * 1024)}MB以下にしてください: {len(content)} bytes"))

    text = _decode(content)
    if "<title>" not in text or "</title>" not in text:
        issues.append(UploadIssue("error", "missing-title", "HTMLファイルには<title>タグが必要です"))

    for code, pattern, description in DANGEROUS_PATTERNS:
        if pattern.search(text):
            issues.append(UploadIssue("error", f"dangerous-{code}", f"セキュリティ上の理由によりアップロードできません: {description}"))

    if articles_dir is not None and (Path(articles_dir) / file_name).exists():
        issues.append(UploadIssue("error", "name-collision", f"同名のファイルが既に存在します: {file_name}", status=409))

    return issues


def store_upload(
    file_name: str,
    content: bytes,
    articles_dir: str | Path,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> UploadResult:
    """検査を通ったファイルだけを書き込む。失敗時は UploadRejected（何も書かない）。"""
    articles_dir = Path(articles_dir)
    issues = validate_upload(file_name, content, articles_dir, max_bytes=max_bytes)
    if issues:
        raise UploadRejected(issues)

    articles_dir.mkdir(parents=True, exist_ok=True)
    dest = articles_dir / file_name
    try:
        # 検査後に同名ファイルができた場合も上書きしない
        with open(dest, "xb") as f:
            f.write(content)
    except FileExistsError:
        raise UploadRejected(
            [UploadIssue("error", "name-collision", f"同名のファイルが既に存在します: {file_name}", status=409)]
        ) from None
    except OSError:
        dest.unlink(missing_ok=True)
        raise

    text = _decode(content)
    m = TITLE_RE.search(text)
    structure = analyze_structure(text)
    slug = file_name[: -len(".html")]
    print(f"[OK] step=upload file={file_name} size={len(content)}")
    return UploadResult(
        filename=file_name,
        slug=slug,
        title=m.group(1).strip() if m else UNKNOWN_TITLE,
        size=len(content),
        url=f"/articles/{slug}",
        uploaded_at=datetime.now(timezone.utc),
        structure=structure,
        quality_score=quality_score(structure),
    )


def run(path: Path, articles_dir: Path, store: bool = False, max_bytes: int = MAX_UPLOAD_BYTES) -> int:
    try:
        content = path.read_bytes()
    except OSError as e:
        print(f"[ERROR] read-failed: {path} ({e})")
        return 1

    issues = validate_upload(path.name, content, articles_dir, max_bytes=max_bytes)

    if issues:
        print("Upload check report")
        print("=" * 64)
        for issue in issues:
            tag = "ERROR" if issue.severity == "error" else "WARN"
            print(f"[{tag}] {issue.code}: {issue.message}")
        print("=" * 64)

    structure = analyze_structure(content)
    flags = " ".join(f"{k}={'yes' if v else 'no'}" for k, v in structure.items())
    print(f"Checked {path.name}: {len(issues)} issue(s), quality={quality_score(structure)}/{len(structure)} ({flags})")

    if any(i.severity == "error" for i in issues):
        print("Upload check failed due to error-level issues.")
        return 1

    if store:
        result = store_upload(path.name, content, articles_dir, max_bytes=max_bytes)
        print(f"Stored as {result.url}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate an article HTML file before publishing")
    parser.add_argument("path", help="Path to the article HTML file")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to site config yaml")
    parser.add_argument("--articles-dir", default=None, help="Override articles directory")
    parser.add_argument("--store", action="store_true", help="Copy into the articles directory when valid")
    args = parser.parse_args()

    cfg = load_site_config(args.config)
    articles_dir = Path(args.articles_dir or cfg["articles_dir"])
    return run(Path(args.path), articles_dir, store=args.store, max_bytes=cfg["max_upload_bytes"])


if __name__ == "__main__":
    raise SystemExit(main())
