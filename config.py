"""
Central configuration — reads from environment variables / .env file.

All values are gathered once at process start into an immutable Settings
object which is passed explicitly to the orchestrator, chat handler, strategy
catalog and web app. Nothing reads os.environ after startup, so tests can
build several Settings side by side with Settings(...) or dataclasses.replace().

API keys:
  GEMINI_API_KEY      Google Gemini (vision + grounded analysis, primary)
  OPENAI_API_KEY      OpenAI (vision + analysis)
  ANTHROPIC_API_KEY   Anthropic (vision + analysis)
  OCR_API_KEY         OCR.Space (fallback identification)
  USDA_API_KEY        USDA FoodData Central (fallback composition; DEMO_KEY works at low volume)
A missing key doesn't stop the server: calls to that adapter fail fast and the
fallback chain moves on.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

KNOWN_PROVIDERS = ("gemini", "openai", "anthropic")


def _env_bool(env_key: str, default: bool) -> bool:
    raw = os.getenv(env_key, "true" if default else "false")
    return raw.strip().lower() not in ("false", "0", "no", "off")


def _env_str(env_key: str) -> Optional[str]:
    value = os.getenv(env_key, "").strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    # ── API keys ──────────────────────────────────────────────────────────────
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    ocr_api_key: Optional[str] = None
    usda_api_key: Optional[str] = "DEMO_KEY"

    # ── LLM providers ─────────────────────────────────────────────────────────
    # Tried in this order for vision, facet analysis and chat.
    llm_providers: tuple[str, ...] = KNOWN_PROVIDERS
    gemini_model: str = "gemini-2.5-flash"
    openai_model: str = "gpt-4o-mini"
    anthropic_model: str = "claude-3-5-haiku-latest"

    # ── Fallback chain behaviour ──────────────────────────────────────────────
    adapter_timeout: float = 45.0    # seconds per attempt; a timeout counts as a failure
    adapter_retries: int = 1         # extra attempts per strategy (never after RateLimited)
    retry_delay: float = 0.5
    # "fallback" → degraded records get the fallback sentiment chain
    # "null"     → degraded records get no sentiment facet at all
    degraded_sentiment: str = "fallback"

    # ── Uploads ───────────────────────────────────────────────────────────────
    max_upload_bytes: int = 25 * 1024 * 1024
    embed_image_url: bool = True     # store the upload as a data: URL on the record

    # ── Storage ───────────────────────────────────────────────────────────────
    store_backend: str = "memory"    # memory | sqlite
    data_dir: Path = field(default_factory=lambda: Path("data"))

    # ── Server ────────────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "analyses.db"

    @classmethod
    def from_env(cls) -> "Settings":
        requested = [
            p.strip().lower()
            for p in os.getenv("LLM_PROVIDERS", ",".join(KNOWN_PROVIDERS)).split(",")
            if p.strip()
        ]
        # Per-provider toggle, e.g. ENABLE_ANTHROPIC=false
        providers = tuple(
            p for p in requested
            if p in KNOWN_PROVIDERS and _env_bool(f"ENABLE_{p.upper()}", True)
        )

        degraded_sentiment = os.getenv("DEGRADED_SENTIMENT", "fallback").strip().lower()
        if degraded_sentiment not in ("fallback", "null"):
            raise ValueError("DEGRADED_SENTIMENT must be 'fallback' or 'null'")

        store_backend = os.getenv("STORE_BACKEND", "memory").strip().lower()
        if store_backend not in ("memory", "sqlite"):
            raise ValueError("STORE_BACKEND must be 'memory' or 'sqlite'")

        return cls(
            gemini_api_key=_env_str("GEMINI_API_KEY"),
            openai_api_key=_env_str("OPENAI_API_KEY"),
            anthropic_api_key=_env_str("ANTHROPIC_API_KEY"),
            ocr_api_key=_env_str("OCR_API_KEY"),
            usda_api_key=_env_str("USDA_API_KEY") or "DEMO_KEY",
            llm_providers=providers,
            gemini_model=os.getenv("GEMINI_MODEL", cls.gemini_model),
            openai_model=os.getenv("OPENAI_MODEL", cls.openai_model),
            anthropic_model=os.getenv("ANTHROPIC_MODEL", cls.anthropic_model),
            adapter_timeout=float(os.getenv("ADAPTER_TIMEOUT", "45")),
            adapter_retries=int(os.getenv("ADAPTER_RETRIES", "1")),
            retry_delay=float(os.getenv("RETRY_DELAY", "0.5")),
            degraded_sentiment=degraded_sentiment,
            max_upload_bytes=int(float(os.getenv("MAX_UPLOAD_MB", "25")) * 1024 * 1024),
            embed_image_url=_env_bool("EMBED_IMAGE_URL", True),
            store_backend=store_backend,
            data_dir=Path(os.getenv("DATA_DIR", "data")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "5000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
