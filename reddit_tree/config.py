import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from reddit_tree.constants import (
    DEFAULT_SUBREDDIT,
    DEFAULT_USER_AGENT,
    HTTP_TIMEOUT,
    MAX_BATCH,
    QUEUE_CONCURRENCY,
)

CONFIG_DIR = Path.home() / ".config" / "reddit_tree"
CONFIG_FILE = CONFIG_DIR / "config.json"


@dataclass
class FetchSettings:
    max_batch: int = MAX_BATCH
    concurrency: int = QUEUE_CONCURRENCY
    subreddit: str = DEFAULT_SUBREDDIT
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = HTTP_TIMEOUT


def load_config() -> dict[str, Any]:
    """Saved settings; a missing, unreadable or non-object file reads as empty."""
    try:
        raw = json.loads(CONFIG_FILE.read_text())
    except (OSError, ValueError):
        return {}
    return raw if isinstance(raw, dict) else {}


def save_config(key: str, value: str) -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    config = {**load_config(), key: value}
    CONFIG_FILE.write_text(json.dumps(config, indent=2))
    # Holds OAuth tokens and the client secret
    CONFIG_FILE.chmod(0o600)


def get_access_token() -> Optional[str]:
    return load_config().get("access_token")


def get_refresh_token() -> Optional[str]:
    return load_config().get("refresh_token")


def get_client_credentials() -> Optional[tuple[str, str]]:
    config = load_config()
    client_id = config.get("client_id")
    client_secret = config.get("client_secret")
    if not client_id or not client_secret:
        return None
    return client_id, client_secret


def get_user_agent() -> str:
    return load_config().get("user_agent") or DEFAULT_USER_AGENT


def get_subreddit() -> str:
    return load_config().get("subreddit") or DEFAULT_SUBREDDIT


def _as_int(value: object, default: int) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def load_settings() -> FetchSettings:
    config = load_config()
    # morechildren rejects more than MAX_BATCH ids per call
    max_batch = min(max(_as_int(config.get("max_batch"), MAX_BATCH), 1), MAX_BATCH)
    concurrency = max(_as_int(config.get("concurrency"), QUEUE_CONCURRENCY), 1)
    try:
        timeout = float(config.get("timeout", HTTP_TIMEOUT))
    except (TypeError, ValueError):
        timeout = HTTP_TIMEOUT
    return FetchSettings(
        max_batch=max_batch,
        concurrency=concurrency,
        subreddit=get_subreddit(),
        user_agent=get_user_agent(),
        timeout=timeout,
    )
