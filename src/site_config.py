from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from article_models import DEFAULT_AUTHOR

DEFAULT_CONFIG_PATH = "src/site.yaml"

DEFAULT_SITE_CONFIG: dict[str, Any] = {
    "site_name": "防衛情報研究センター",
    "site_name_en": "Defense Intelligence Research Center",
    "articles_dir": "pub/articles",
    "out_dir": "docs",
    "base_path": "/",
    "container_selector": ".article-content",
    "language_storage_key": "defense-intel-language",
    "default_author": DEFAULT_AUTHOR,
    "articles_per_page": 10,
    "related_limit": 4,
    "max_upload_bytes": 10 * 1024 * 1024,
}

_INT_KEYS = {"articles_per_page", "related_limit", "max_upload_bytes"}


def _merge_dict(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if key not in base or value is None:
            continue
        if key in _INT_KEYS:
            try:
                merged[key] = int(value)
            except (TypeError, ValueError):
                print(f"[WARN] step=config key={key} invalid int value={value!r}; using default")
            continue
        merged[key] = str(value)
    return merged


def load_site_config(path: str | Path = DEFAULT_CONFIG_PATH) -> dict[str, Any]:
    """site.yaml を読み込み、既定値にマージして返す。

    ファイルが無い・壊れている場合は既定値のみで動く（ビルドを止めない）。
    未知のキーは無視する。
    """
    try:
        with open(path, encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except FileNotFoundError:
        return dict(DEFAULT_SITE_CONFIG)
    except (OSError, yaml.YAMLError) as e:
        print(f"[WARN] step=config path={path} err={e}; using defaults")
        return dict(DEFAULT_SITE_CONFIG)
    if not isinstance(cfg, dict):
        return dict(DEFAULT_SITE_CONFIG)
    return _merge_dict(DEFAULT_SITE_CONFIG, cfg)
