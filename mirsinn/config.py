from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

_REPO_ROOT = Path(__file__).resolve().parent.parent
_ENV_LOADED = False
_ENV_FILES = (
    _REPO_ROOT / ".env.local",
    _REPO_ROOT / ".env",
    _REPO_ROOT / "config" / "app.env",
)


def _load_env_file(path: Path) -> None:
    """Best-effort `.env` loader that respects already-set variables."""
    if not path.exists():
        return
    try:
        for raw in path.read_text(encoding="utf-8").splitlines():
            line = raw.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip()
            if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
                value = value[1:-1]
            if key and key not in os.environ:
                os.environ[key] = value
    except (OSError, UnicodeDecodeError):
        # Malformed env files are ignored; explicit env vars win anyway.
        return


def load_environment() -> None:
    """Load environment files once, preferring explicitly exported values."""
    global _ENV_LOADED
    if _ENV_LOADED:
        return
    for candidate in _ENV_FILES:
        _load_env_file(candidate)
    _ENV_LOADED = True


def _get_env(*keys: str) -> Optional[str]:
    for key in keys:
        value = os.getenv(key)
        if value:
            return value
    return None


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _int_setting(key: str, default: int) -> int:
    value = _optional_int(os.getenv(key))
    return default if value is None else value


@dataclass(frozen=True)
class Settings:
    db_backend: str
    db_host: str
    db_port: int
    db_name: str
    db_user: str
    db_password: Optional[str]
    db_schema: str
    documents_table: str
    openai_base_url: str
    openai_api_key: Optional[str]
    question_model_name: str
    results_model_name: str
    openai_timeout: int
    reader_base_url: str
    reader_api_key: Optional[str]
    listing_timeout: int
    news_sources_path: Optional[Path]
    question_target_count: int
    question_attempts_per_source: int
    question_fallback_multiplier: int
    recent_article_days: int
    prompt_version: str
    push_relay_url: Optional[str]
    push_relay_token: Optional[str]
    console_basic_username: Optional[str]
    console_basic_password: Optional[str]
    console_api_token: Optional[str]
    feishu_app_id: Optional[str]
    feishu_app_secret: Optional[str]
    feishu_receive_id: Optional[str]
    feishu_receive_id_type: str


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached project settings sourced from env variables."""
    load_environment()

    db_backend = (os.getenv("DB_BACKEND") or "postgres").strip().lower()
    if db_backend not in {"postgres", "memory"}:
        db_backend = "postgres"
    db_host = _get_env("DB_HOST", "POSTGRES_HOST") or "localhost"
    db_port = _optional_int(_get_env("DB_PORT", "POSTGRES_PORT")) or 5432
    db_name = _get_env("DB_NAME", "POSTGRES_DB") or "postgres"
    db_user = _get_env("DB_USER", "POSTGRES_USER") or "postgres"
    db_password = _get_env("DB_PASSWORD", "POSTGRES_PASSWORD")
    db_schema = _get_env("DB_SCHEMA", "POSTGRES_SCHEMA") or "public"
    documents_table = os.getenv("DOCUMENTS_TABLE", "documents")

    openai_base_url = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    openai_api_key = os.getenv("OPENAI_API_KEY")
    question_model_name = os.getenv("OPENAI_MODEL") or "gpt-4.1-mini"
    results_model_name = os.getenv("RESULTS_MODEL_NAME", question_model_name)
    openai_timeout = _optional_int(os.getenv("OPENAI_TIMEOUT")) or 120

    reader_base_url = os.getenv("READER_BASE_URL", "https://r.jina.ai/")
    reader_api_key = os.getenv("READER_API_KEY")
    listing_timeout = _optional_int(os.getenv("LISTING_TIMEOUT")) or 45

    raw_sources_path = os.getenv("NEWS_SOURCES_PATH")
    news_sources_path: Optional[Path] = None
    if raw_sources_path:
        candidate = Path(raw_sources_path).expanduser()
        news_sources_path = (candidate if candidate.is_absolute() else _REPO_ROOT / candidate).resolve()

    question_target_count = _int_setting("QUESTION_TARGET_COUNT", 5)
    question_attempts_per_source = _int_setting("QUESTION_ATTEMPTS_PER_SOURCE", 3)
    question_fallback_multiplier = _int_setting("QUESTION_FALLBACK_MULTIPLIER", 6)
    recent_article_days = _int_setting("RECENT_ARTICLE_DAYS", 3)
    prompt_version = os.getenv("PROMPT_VERSION", "2025-02-20")

    push_relay_url = os.getenv("PUSH_RELAY_URL")
    push_relay_token = os.getenv("PUSH_RELAY_TOKEN")

    console_basic_username = os.getenv("CONSOLE_BASIC_USERNAME")
    console_basic_password = os.getenv("CONSOLE_BASIC_PASSWORD")
    console_api_token = os.getenv("CONSOLE_API_TOKEN")

    feishu_app_id = _get_env("FEISHU_APP_ID")
    feishu_app_secret = _get_env("FEISHU_APP_SECRET")
    feishu_receive_id = _get_env("FEISHU_RECEIVE_ID", "FEISHU_OPEN_ID")
    feishu_receive_id_type = os.getenv("FEISHU_RECEIVE_ID_TYPE", "open_id")
    if feishu_receive_id_type not in {"open_id", "user_id", "union_id", "chat_id"}:
        feishu_receive_id_type = "open_id"

    return Settings(
        db_backend=db_backend,
        db_host=db_host,
        db_port=db_port,
        db_name=db_name,
        db_user=db_user,
        db_password=db_password,
        db_schema=db_schema,
        documents_table=documents_table,
        openai_base_url=openai_base_url,
        openai_api_key=openai_api_key,
        question_model_name=question_model_name,
        results_model_name=results_model_name,
        openai_timeout=openai_timeout,
        reader_base_url=reader_base_url,
        reader_api_key=reader_api_key,
        listing_timeout=listing_timeout,
        news_sources_path=news_sources_path,
        question_target_count=max(1, question_target_count),
        question_attempts_per_source=max(1, question_attempts_per_source),
        question_fallback_multiplier=max(1, question_fallback_multiplier),
        recent_article_days=max(0, recent_article_days),
        prompt_version=prompt_version,
        push_relay_url=push_relay_url,
        push_relay_token=push_relay_token,
        console_basic_username=console_basic_username,
        console_basic_password=console_basic_password,
        console_api_token=console_api_token,
        feishu_app_id=feishu_app_id,
        feishu_app_secret=feishu_app_secret,
        feishu_receive_id=feishu_receive_id,
        feishu_receive_id_type=feishu_receive_id_type,
    )


__all__ = ["Settings", "get_settings", "load_environment"]
