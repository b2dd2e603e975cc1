"""
Configuration management using YAML files, environment variables and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults, followed by environment overrides.
Configuration sections:
- StoreConfig: Karakeep API connection and retry settings
- ProviderConfig: Text-generation provider settings
- DigestConfig: Section selection settings
- SummaryConfig: Summarization pool and prompt budget settings
- EmailConfig: SMTP delivery settings
- OutputConfig: Rendered file output settings
- LoggingConfig: Logging behavior
- LangfuseConfig: Langfuse tracing settings
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import os
from typing import Any, Mapping

import yaml

from .errors import ConfigurationError

REDACTION_MODES = ("none", "redact_urls", "redact_bodies")


@dataclass
class StoreConfig:
    """Configuration for the Karakeep REST API.

    Attributes:
        base_url: Karakeep server URL (KARAKEEP_URL)
        api_key: API token (KARAKEEP_API_KEY)
        public_url: Optional URL used for reader links in the email (KARAKEEP_PUBLIC_URL)
        page_size: Items requested per page, capped at 100
        max_retries: Attempts per request for server and network errors
        retry_base_delay: Base backoff delay in seconds, doubled per attempt
        rate_limit_fallback_delay: Wait in seconds on 429 without Retry-After
        max_rate_limit_waits: Number of 429 waits tolerated per request
        timeout_seconds: HTTP request timeout
        trust_env: Whether to respect system proxy settings
    """

    base_url: str | None = None
    api_key: str | None = None
    public_url: str | None = None
    page_size: int = 100
    max_retries: int = 3
    retry_base_delay: float = 1.0
    rate_limit_fallback_delay: float = 5.0
    max_rate_limit_waits: int = 10
    timeout_seconds: float = 30.0
    trust_env: bool = True


@dataclass
class ProviderConfig:
    """Configuration for pluggable text-generation providers.

    Attributes:
        name: "auto", "anthropic", "ollama" or "gemini"; "auto" prefers
            anthropic when a key is set, then ollama when a URL is set
        model: Model identifier; empty string selects the provider default
        api_key: Optional inline API key (overrides env var)
        api_key_env: Environment variable holding the API key
        base_url: Optional base URL override
        ollama_url: Ollama server URL (OLLAMA_URL)
        ollama_model: Ollama model name (OLLAMA_MODEL), preferred over model for ollama
        timeout_seconds: Per-call HTTP timeout
        trust_env: Whether to respect system proxy settings for API requests
    """

    name: str = "auto"
    model: str = ""
    api_key: str | None = None
    api_key_env: str | None = None
    base_url: str | None = None
    ollama_url: str | None = None
    ollama_model: str | None = None
    timeout_seconds: float = 60.0
    trust_env: bool = True


@dataclass
class DigestConfig:
    """Configuration for section selection.

    Attributes:
        priority_tags: Tags that boost the priority score (case-insensitive)
        min_content_length: Minimum content or summary length for an item to qualify
        recently_saved_days: Window for "Recently Saved"
        recently_saved_count: Items in "Recently Saved"
        buried_treasure_days: Minimum age for "Buried Treasure"
        buried_treasure_count: Items in "Buried Treasure"
        this_month_last_year_count: Items in "This Month Last Year"
        tag_min_items: Unused items a tag needs to qualify for the roundup
        tag_max_items: Cap on items in the roundup
        skip_when_empty: Skip delivery when there are no unread items
        schedule: Cron expression for the daemon command (local time)
    """

    priority_tags: list[str] = field(
        default_factory=lambda: ["important", "work", "reference"]
    )
    min_content_length: int = 200
    recently_saved_days: int = 30
    recently_saved_count: int = 3
    buried_treasure_days: int = 30
    buried_treasure_count: int = 3
    this_month_last_year_count: int = 3
    tag_min_items: int = 3
    tag_max_items: int = 5
    skip_when_empty: bool = True
    schedule: str = "0 8 * * 0"


@dataclass
class SummaryConfig:
    """Configuration for LLM summarization.

    Attributes:
        concurrency: Maximum provider calls in flight
        content_max_chars: Maximum characters of content sent per article
        article_max_tokens: Token budget for a single article summary
        cluster_max_tokens: Token budget for the tag cluster synthesis
        words_per_minute: Reading speed for read-time estimates
        max_read_minutes: Upper clamp for read-time estimates
        fetch_full_content: Re-fetch item bodies for read-time accuracy
    """

    concurrency: int = 5
    content_max_chars: int = 8000
    article_max_tokens: int = 300
    cluster_max_tokens: int = 500
    words_per_minute: int = 238
    max_read_minutes: int = 90
    fetch_full_content: bool = True


@dataclass
class EmailConfig:
    """Configuration for SMTP delivery.

    Attributes:
        smtp_host: SMTP server host
        smtp_port: SMTP server port
        smtp_user: SMTP username
        smtp_password: SMTP password
        smtp_secure: Implicit TLS; None auto-detects from the port (465)
        sender: From address
        recipients: To addresses
        subject: Subject prefix, the formatted date is appended
    """

    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_secure: bool | None = None
    sender: str | None = None
    recipients: list[str] = field(default_factory=list)
    subject: str = "Your Weekly Karakeep Digest"


@dataclass
class OutputConfig:
    """Configuration for rendered file output.

    Attributes:
        write_html: Write digest.html into the output directory
        write_text: Write digest.txt into the output directory
    """

    write_html: bool = True
    write_text: bool = True


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the main log file
        llm_log_enabled: Whether to enable separate LLM interaction logging
        llm_log_detail: LLM log detail level ("response_only", "prompt_response")
        llm_log_redaction: Redaction mode for LLM logs ("none", "redact_urls", "redact_bodies")
        llm_log_file: Name of the LLM log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = True
    format: str = "jsonl"
    filename: str = "run.jsonl"
    llm_log_enabled: bool = True
    llm_log_detail: str = "response_only"
    llm_log_redaction: str = "redact_urls"
    llm_log_file: str = "llm.jsonl"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse tracing.

    Attributes:
        enabled: Whether to enable Langfuse tracing
        public_key: Langfuse public key (optional)
        secret_key: Langfuse secret key (optional)
        host: Langfuse host URL (optional)
        environment: Langfuse environment label (optional)
        release: Langfuse release identifier (optional)
        redaction: Redaction mode for prompt/response payloads
        max_text_chars: Maximum characters for prompt/response payloads
    """

    enabled: bool = False
    public_key: str | None = None
    secret_key: str | None = None
    host: str | None = None
    environment: str | None = None
    release: str | None = None
    redaction: str = "redact_urls"
    max_text_chars: int = 20000


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    store: StoreConfig = field(default_factory=StoreConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    digest: DigestConfig = field(default_factory=DigestConfig)
    summary: SummaryConfig = field(default_factory=SummaryConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)


DEFAULT_CONFIG = AppConfig()

_PROVIDER_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}


def load_config(path: str | None, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Load configuration from a YAML file with defaults and env overrides."""
    if not path:
        cfg = _fromdict(_asdict(DEFAULT_CONFIG))
    else:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        cfg = _merge_config(DEFAULT_CONFIG, raw)

    return apply_env_overrides(cfg, os.environ if environ is None else environ)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = _asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            data[key].update(value)
        else:
            data[key] = value
    return _fromdict(data)


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return asdict(cfg)


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    try:
        return AppConfig(
            store=StoreConfig(**data["store"]),
            provider=ProviderConfig(**data["provider"]),
            digest=DigestConfig(**data["digest"]),
            summary=SummaryConfig(**data["summary"]),
            email=EmailConfig(**data["email"]),
            output=OutputConfig(**data["output"]),
            logging=LoggingConfig(**data["logging"]),
            langfuse=LangfuseConfig(**data.get("langfuse", {})),
        )
    except TypeError as exc:
        raise ConfigurationError(f"Unknown configuration key: {exc}") from exc


def apply_env_overrides(cfg: AppConfig, environ: Mapping[str, str]) -> AppConfig:
    """Overlay the deployment environment variables onto the loaded config."""
    if environ.get("KARAKEEP_URL"):
        cfg.store.base_url = environ["KARAKEEP_URL"]
    if environ.get("KARAKEEP_API_KEY"):
        cfg.store.api_key = environ["KARAKEEP_API_KEY"]
    if environ.get("KARAKEEP_PUBLIC_URL"):
        cfg.store.public_url = environ["KARAKEEP_PUBLIC_URL"]
    if environ.get("OLLAMA_URL"):
        cfg.provider.ollama_url = environ["OLLAMA_URL"]
    if environ.get("OLLAMA_MODEL"):
        cfg.provider.ollama_model = environ["OLLAMA_MODEL"]
    if environ.get("SMTP_HOST"):
        cfg.email.smtp_host = environ["SMTP_HOST"]
    if environ.get("SMTP_PORT"):
        try:
            cfg.email.smtp_port = int(environ["SMTP_PORT"])
        except ValueError as exc:
            raise ConfigurationError(f"SMTP_PORT must be an integer: {environ['SMTP_PORT']!r}") from exc
    if environ.get("SMTP_USER"):
        cfg.email.smtp_user = environ["SMTP_USER"]
    if environ.get("SMTP_PASS"):
        cfg.email.smtp_password = environ["SMTP_PASS"]
    if environ.get("SMTP_SECURE"):
        cfg.email.smtp_secure = _parse_bool(environ["SMTP_SECURE"])
    if environ.get("EMAIL_FROM"):
        cfg.email.sender = environ["EMAIL_FROM"]
    if environ.get("EMAIL_TO"):
        cfg.email.recipients = split_csv(environ["EMAIL_TO"])
    if environ.get("PRIORITY_TAGS"):
        cfg.digest.priority_tags = split_csv(environ["PRIORITY_TAGS"])
    if environ.get("CRON_SCHEDULE"):
        cfg.digest.schedule = environ["CRON_SCHEDULE"]
    return cfg


def validate_config(cfg: AppConfig, require_email: bool = False) -> None:
    """Raise ConfigurationError listing every problem found."""
    problems: list[str] = []
    if not cfg.store.base_url:
        problems.append("store.base_url (KARAKEEP_URL) is required")
    if not cfg.store.api_key:
        problems.append("store.api_key (KARAKEEP_API_KEY) is required")
    if cfg.store.max_retries < 1:
        problems.append("store.max_retries must be at least 1")
    if cfg.summary.concurrency < 1:
        problems.append("summary.concurrency must be at least 1")
    if cfg.digest.tag_min_items < 1:
        problems.append("digest.tag_min_items must be at least 1")
    if cfg.digest.tag_max_items < cfg.digest.tag_min_items:
        problems.append("digest.tag_max_items must not be below digest.tag_min_items")
    for key, mode in (
        ("logging.llm_log_redaction", cfg.logging.llm_log_redaction),
        ("langfuse.redaction", cfg.langfuse.redaction),
    ):
        if mode not in REDACTION_MODES:
            problems.append(f"{key} must be one of {', '.join(REDACTION_MODES)}")
    try:
        resolve_provider_name(cfg.provider)
    except ConfigurationError as exc:
        problems.append(str(exc))
    if require_email:
        if not cfg.email.smtp_host:
            problems.append("email.smtp_host (SMTP_HOST) is required")
        if not cfg.email.sender:
            problems.append("email.sender (EMAIL_FROM) is required")
        if not cfg.email.recipients:
            problems.append("email.recipients (EMAIL_TO) is required")
    if problems:
        raise ConfigurationError("Invalid configuration: " + "; ".join(problems))


def resolve_provider_name(cfg: ProviderConfig) -> str:
    """Resolve "auto" to a concrete provider: anthropic first, then ollama."""
    name = cfg.name.lower().strip()
    if name != "auto":
        return name
    if get_api_key(ProviderConfig(name="anthropic", api_key=cfg.api_key, api_key_env=cfg.api_key_env)):
        return "anthropic"
    if cfg.ollama_url:
        return "ollama"
    raise ConfigurationError("Either ANTHROPIC_API_KEY or OLLAMA_URL must be provided")


def get_api_key(cfg: ProviderConfig) -> str | None:
    """Get API key from inline config or environment variable."""
    if cfg.api_key:
        return cfg.api_key
    if cfg.api_key_env:
        return os.getenv(cfg.api_key_env)
    env_name = _PROVIDER_KEY_ENV.get(cfg.name.lower().strip(), "ANTHROPIC_API_KEY")
    return os.getenv(env_name)


def get_reader_base_url(cfg: StoreConfig) -> str:
    """Base URL for reader deep links in rendered output."""
    return (cfg.public_url or cfg.base_url or "").rstrip("/")


def split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}
