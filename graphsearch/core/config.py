"""Configuration from environment variables (.env)."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

GRAPH_MAX_PAGE_SIZE = 500


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    project_root: Path
    logs_dir: Path
    graph_api_endpoint: str
    token_store_path: Path
    user_timezone: str
    default_page_size: int
    max_page_size: int
    http_timeout_seconds: float
    enrichment_timeout_seconds: float
    enrichment_concurrency: int
    rich_tier_max_boolean_operators: int
    rich_tier_max_field_predicates: int
    rich_tier_on_date_range: bool

    @classmethod
    def load(cls) -> "Config":
        project_root = Path(__file__).parent.parent.parent
        home = Path(os.getenv("HOME") or os.getenv("USERPROFILE") or Path.home())
        return cls(
            project_root=project_root,
            logs_dir=Path(os.getenv("GRAPHSEARCH_LOGS_DIR", str(project_root / "logs"))),
            graph_api_endpoint=os.getenv("GRAPH_API_ENDPOINT", "https://graph.microsoft.com/v1.0/"),
            token_store_path=Path(
                os.getenv("GRAPH_TOKEN_STORE_PATH", str(home / ".office-mcp-tokens.json"))
            ),
            user_timezone=os.getenv("USER_TIMEZONE", os.getenv("TZ", "UTC")),
            default_page_size=int(os.getenv("SEARCH_DEFAULT_PAGE_SIZE", "25")),
            max_page_size=int(os.getenv("SEARCH_MAX_PAGE_SIZE", str(GRAPH_MAX_PAGE_SIZE))),
            http_timeout_seconds=float(os.getenv("GRAPH_HTTP_TIMEOUT_SECONDS", "30")),
            enrichment_timeout_seconds=float(os.getenv("SEARCH_ENRICHMENT_TIMEOUT_SECONDS", "10")),
            enrichment_concurrency=int(os.getenv("SEARCH_ENRICHMENT_CONCURRENCY", "5")),
            rich_tier_max_boolean_operators=int(os.getenv("SEARCH_RICH_MAX_BOOLEAN_OPERATORS", "1")),
            rich_tier_max_field_predicates=int(os.getenv("SEARCH_RICH_MAX_FIELD_PREDICATES", "2")),
            rich_tier_on_date_range=_env_bool("SEARCH_RICH_ON_DATE_RANGE", True),
        )

    def validate(self) -> list[str]:
        errors = []
        if not 1 <= self.max_page_size <= GRAPH_MAX_PAGE_SIZE:
            errors.append(
                f"SEARCH_MAX_PAGE_SIZE must be between 1 and {GRAPH_MAX_PAGE_SIZE}, got {self.max_page_size}"
            )
        if not 1 <= self.default_page_size <= max(1, self.max_page_size):
            errors.append(
                f"SEARCH_DEFAULT_PAGE_SIZE must be between 1 and SEARCH_MAX_PAGE_SIZE, got {self.default_page_size}"
            )
        if self.enrichment_concurrency < 1:
            errors.append("SEARCH_ENRICHMENT_CONCURRENCY must be at least 1")
        if self.enrichment_timeout_seconds <= 0:
            errors.append("SEARCH_ENRICHMENT_TIMEOUT_SECONDS must be positive")
        if not self.graph_api_endpoint.startswith(("http://", "https://")):
            errors.append(f"GRAPH_API_ENDPOINT is not an http(s) URL: {self.graph_api_endpoint}")
        return errors


config = Config.load()
