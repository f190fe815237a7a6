from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, cast

import httpx

from reddit_tree.constants import (
    DEFAULT_SUBREDDIT,
    DEFAULT_USER_AGENT,
    HOT_THREAD_COUNT,
    HTTP_CONNECT_TIMEOUT,
    HTTP_TIMEOUT,
    MAX_BATCH,
    REDDIT_OAUTH_BASE,
    REDDIT_TOKEN_URL,
)
from reddit_tree.errors import MalformedFragment, TransportError
from reddit_tree.fragments import listing_children, more_children_things
from reddit_tree.models import ThreadChoice

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def get_thread(self, thread_id: str) -> object: ...

    async def get_more_children(
        self, thread_id: str, child_refs: list[str]
    ) -> list[object]: ...


def bare_thread_id(thread_id: str) -> str:
    """abc and t3_abc both name the same article."""
    return thread_id[3:] if thread_id.startswith("t3_") else thread_id


class RedditClient:
    """Authenticated access to the reddit OAuth API."""

    BASE_URL: str = REDDIT_OAUTH_BASE

    def __init__(
        self,
        access_token: str,
        subreddit: str = DEFAULT_SUBREDDIT,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        self.subreddit = subreddit
        self.user_agent = user_agent
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            base_url=self.BASE_URL,
            follow_redirects=True,
            headers={
                "User-Agent": user_agent,
                "Authorization": f"bearer {access_token}",
            },
            timeout=httpx.Timeout(timeout, connect=HTTP_CONNECT_TIMEOUT),
        )

    async def _get_json(
        self, path: str, params: Optional[dict[str, str]] = None
    ) -> object:
        try:
            resp: httpx.Response = await self.client.get(path, params=params)
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {path} failed: {e}") from e
        if resp.status_code >= 300:
            raise TransportError(
                f"{path} returned status code {resp.status_code}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedFragment(f"{path} returned invalid JSON: {e}") from e

    async def get_thread(self, thread_id: str) -> object:
        """GET [/r/subreddit]/comments/article, including "more" stubs."""
        path = f"/r/{self.subreddit}/comments/{bare_thread_id(thread_id)}"
        logger.debug(f"Fetching thread {thread_id} from {path}")
        return await self._get_json(path, params={"showmore": "true"})

    async def get_more_children(
        self, thread_id: str, child_refs: list[str]
    ) -> list[object]:
        if len(child_refs) > MAX_BATCH:
            raise ValueError(
                f"morechildren accepts at most {MAX_BATCH} children, got {len(child_refs)}"
            )
        params = {
            "api_type": "json",
            "link_id": f"t3_{bare_thread_id(thread_id)}",
            "children": ",".join(child_refs),
        }
        payload = await self._get_json("/api/morechildren", params=params)
        return more_children_things(payload)

    async def fetch_hot_threads(self, count: int = HOT_THREAD_COUNT) -> list[ThreadChoice]:
        """Hot threads of the subreddit, sorted by title."""
        payload = await self._get_json(
            f"/r/{self.subreddit}/hot", params={"count": str(count)}
        )
        choices: list[ThreadChoice] = []
        if isinstance(payload, dict) and payload.get("kind") == "Listing":
            for child in listing_children(payload):
                data = cast(dict[str, Any], child).get("data") if isinstance(child, dict) else None
                if not isinstance(data, dict) or not isinstance(data.get("id"), str):
                    continue
                choices.append(ThreadChoice(name=data["id"], label=str(data.get("title", ""))))
        return sorted(choices, key=lambda c: c.label)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> RedditClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


async def refresh_access_token(
    client_id: str,
    client_secret: str,
    refresh_token: str,
    user_agent: str = DEFAULT_USER_AGENT,
) -> str:
    """
    Obtain a new access token. Access tokens expire after an hour.

    See https://github.com/reddit/reddit/wiki/OAuth2
    """
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(HTTP_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT)
    ) as client:
        try:
            resp = await client.post(
                REDDIT_TOKEN_URL,
                auth=(client_id, client_secret),
                headers={"User-Agent": user_agent},
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"OAuth token refresh failed: {e}") from e

    if resp.status_code >= 300:
        raise TransportError(
            f"OAuth token refresh returned status code {resp.status_code}",
            status_code=resp.status_code,
        )
    try:
        token = resp.json().get("access_token")
    except (ValueError, AttributeError):
        token = None
    if not isinstance(token, str) or not token:
        raise TransportError("OAuth access token could not be retrieved from reddit response")
    logger.info("OAuth access token was refreshed.")
    return token
