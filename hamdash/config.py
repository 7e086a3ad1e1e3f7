"""HAM Dashboard configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value or not value.strip():
        return default
    return Path(os.path.abspath(Path(value.strip()).expanduser()))


# Package root (one level up from hamdash/)
PACKAGE_ROOT = Path(__file__).resolve().parent.parent

# Claude Code keeps per-project transcripts under <CLAUDE_HOME>/projects/<encoded-path>/
CLAUDE_HOME = _env_path("HAMDASH_CLAUDE_HOME", Path.home() / ".claude")
PROJECT_PATH = _env_path("HAMDASH_PROJECT_PATH", Path.cwd())

# Scoped context files
CONTEXT_FILENAME = os.getenv("HAMDASH_CONTEXT_FILENAME", "CLAUDE.md")
ROUTING_SECTION_TITLE = os.getenv("HAMDASH_ROUTING_SECTION_TITLE", "Context Routing")

# Benchmark task logs + state blob, relative to the project root
METRICS_DIR = os.getenv("HAMDASH_METRICS_DIR", ".ham/metrics")
BASELINE_LOG_NAME = "baseline.jsonl"
ACTIVE_LOG_NAME = "tasks.jsonl"
STATE_FILE_NAME = "state.json"

# ham_version is read from this file's frontmatter
SKILL_MD_PATH = _env_path("HAMDASH_SKILL_MD_PATH", PACKAGE_ROOT / "SKILL.md")

# Query defaults
DEFAULT_DAYS = _env_int("HAMDASH_DEFAULT_DAYS", 30)
DEFAULT_SESSION_LIMIT = _env_int("HAMDASH_SESSION_LIMIT", 50)

# Observability
OTEL_ENABLED = _env_bool("HAMDASH_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("HAMDASH_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("HAMDASH_OTEL_SERVICE_NAME", "hamdash")
PROM_PORT = _env_int("HAMDASH_PROM_PORT", 0)

# Server settings
HOST = os.getenv("HAMDASH_HOST", "127.0.0.1")
PORT = _env_int("HAMDASH_PORT", 7777)

# CORS
FRONTEND_ORIGIN = os.getenv("HAMDASH_FRONTEND_ORIGIN", "http://localhost:5173")

# Built dashboard frontend served at "/" when set
STATIC_DIR = os.getenv("HAMDASH_STATIC_DIR", "")
