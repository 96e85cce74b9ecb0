from __future__ import annotations

import argparse
import json
from datetime import datetime, timezone
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, unquote, urlparse

from article_models import ArticleNotFoundError
from article_parser import generate_toc, load_article, parse_directory
from article_queries import available_filters, filter_articles, paginate, related_articles, sort_articles
from article_renderer import raw_bytes, render_detail_page
from script_isolation import ScriptExecutionState
from site_config import DEFAULT_CONFIG_PATH, load_site_config
from upload_validate import UploadRejected, store_upload

# Raw表示は常に最新のファイルを返す
RAW_HEADERS = [
    ("Cache-Control", "no-cache, no-store, must-revalidate"),
    ("Pragma", "no-cache"),
    ("Expires", "0"),
]
NOT_FOUND_BODY = {"error": "Article not found"}


def _json_body(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, default=str)


def _query_int(params: dict[str, list[str]], name: str, default: int) -> int:
    try:
        return int(params.get(name, [str(default)])[0])
    except ValueError:
        return default


def _query_date(params: dict[str, list[str]], name: str) -> datetime | None:
    raw = (params.get(name) or [""])[0].strip()
    if not raw:
        return None
    value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def list_response(config: dict[str, Any], params: dict[str, list[str]]) -> dict[str, Any]:
    """記事一覧API のレスポンス本体（毎回ディレクトリを読み直す）"""
    articles = parse_directory(config["articles_dir"], default_author=config["default_author"])
    filtered = filter_articles(
        articles,
        category=(params.get("category") or [""])[0],
        search=(params.get("search") or [""])[0],
        date_from=_query_date(params, "dateFrom"),
        date_to=_query_date(params, "dateTo"),
    )
    ordered = sort_articles(
        filtered,
        sort_by=(params.get("sortBy") or ["date"])[0],
        order=(params.get("sortOrder") or ["desc"])[0],
    )
    page = paginate(
        ordered,
        page=_query_int(params, "page", 1),
        limit=_query_int(params, "limit", config["articles_per_page"]),
    )
    return {
        "articles": [a.to_dict() for a in page.items],
        "pagination": page.pagination(),
        "filters": available_filters(articles),
    }


def detail_response(config: dict[str, Any], slug: str) -> dict[str, Any]:
    article = load_article(config["articles_dir"], slug, default_author=config["default_author"])
    others = parse_directory(config["articles_dir"], default_author=config["default_author"])
    related = related_articles(article, others, limit=config["related_limit"])
    return {
        "article": article.to_dict(include_content=True),
        "relatedArticles": [a.to_dict() for a in related],
        "tableOfContents": generate_toc(article.content),
    }


def make_handler(config: dict[str, Any]):
    articles_dir = Path(config["articles_dir"])

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            parsed = urlparse(self.path)
            path = parsed.path.rstrip("/") or "/"
            params = parse_qs(parsed.query)
            if path.startswith("/raw/"):
                return self.handle_raw(unquote(path[len("/raw/"):]))
            if path == "/api/articles":
                return self.handle_list(params)
            if path.startswith("/api/articles/"):
                return self.handle_detail(unquote(path[len("/api/articles/"):]))
            if path.startswith("/articles/"):
                return self.handle_page(unquote(path[len("/articles/"):]))
            self.respond_json(HTTPStatus.NOT_FOUND, {"error": "Not found"})

        def do_POST(self):
            parsed = urlparse(self.path)
            path = parsed.path.rstrip("/") or "/"
            if path == "/api/upload":
                return self.handle_upload(parse_qs(parsed.query))
            self.respond_json(HTTPStatus.NOT_FOUND, {"error": "Not found"})

        def respond(
            self,
            status: HTTPStatus,
            body: str | bytes,
            content_type: str = "text/html; charset=utf-8",
            extra_headers: list[tuple[str, str]] | None = None,
        ):
            raw = body if isinstance(body, bytes) else body.encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(raw)))
            if extra_headers:
                for k, v in extra_headers:
                    self.send_header(k, v)
            self.end_headers()
            self.wfile.write(raw)

        def respond_json(self, status: HTTPStatus, data: Any):
            self.respond(status, _json_body(data), "application/json; charset=utf-8")

        def handle_raw(self, slug: str):
            if not slug or "/" in slug or "\\" in slug or slug.startswith("."):
                return self.respond_json(HTTPStatus.NOT_FOUND, NOT_FOUND_BODY)
            try:
                body = raw_bytes(articles_dir / f"{slug}.html")
            except ArticleNotFoundError:
                return self.respond_json(HTTPStatus.NOT_FOUND, NOT_FOUND_BODY)
            self.respond(HTTPStatus.OK, body, extra_headers=RAW_HEADERS)

        def handle_list(self, params: dict[str, list[str]]):
            try:
                data = list_response(config, params)
            except ValueError as e:
                return self.respond_json(HTTPStatus.BAD_REQUEST, {"error": f"Invalid query: {e}"})
            self.respond_json(HTTPStatus.OK, data)

        def handle_detail(self, slug: str):
            try:
                data = detail_response(config, slug)
            except ArticleNotFoundError:
                return self.respond_json(HTTPStatus.NOT_FOUND, NOT_FOUND_BODY)
            self.respond_json(HTTPStatus.OK, data)

        def handle_page(self, slug: str):
            try:
                article = load_article(articles_dir, slug, default_author=config["default_author"])
            except ArticleNotFoundError:
                return self.respond_json(HTTPStatus.NOT_FOUND, NOT_FOUND_BODY)
            others = parse_directory(articles_dir, default_author=config["default_author"])
            page = render_detail_page(
                article,
                related_articles(article, others, limit=config["related_limit"]),
                generate_toc(article.content),
                config,
                ScriptExecutionState(),
            )
            self.respond(HTTPStatus.OK, page)

        def handle_upload(self, params: dict[str, list[str]]):
            file_name = (params.get("filename") or [""])[0]
            if not file_name:
                return self.respond_json(HTTPStatus.BAD_REQUEST, {"error": "ファイルが選択されていません"})
            length = int(self.headers.get("Content-Length", "0") or "0")
            if length > config["max_upload_bytes"]:
                return self.respond_json(HTTPStatus.BAD_REQUEST, {"error": "ファイルサイズが上限を超えています"})
            content = self.rfile.read(length)
            try:
                result = store_upload(file_name, content, articles_dir, max_bytes=config["max_upload_bytes"])
            except UploadRejected as e:
                return self.respond_json(
                    HTTPStatus(e.status),
                    {"error": "アップロードできません", "issues": [i.message for i in e.issues]},
                )
            self.respond_json(HTTPStatus.OK, {"success": True, "data": result.to_dict()})

        def log_message(self, fmt: str, *args):
            return

    return Handler


def main():
    parser = argparse.ArgumentParser(description="Serve article pages, raw HTML and JSON API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8788)
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH)
    args = parser.parse_args()

    config = load_site_config(args.config)
    handler = make_handler(config)
    server = ThreadingHTTPServer((args.host, args.port), handler)
    print(f"Article server running at http://{args.host}:{args.port} (articles_dir={config['articles_dir']})")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
