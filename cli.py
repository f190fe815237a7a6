import argparse
import asyncio
import sys
from pathlib import Path

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from reddit_tree.client import RedditClient, refresh_access_token
from reddit_tree.config import (
    get_access_token,
    get_client_credentials,
    get_refresh_token,
    load_settings,
    save_config,
)
from reddit_tree.engine import CommentTreeFetchEngine
from reddit_tree.errors import FatalRootFetch, TransportError, TreeInvariantError
from reddit_tree.logging_config import configure_logging, get_logger
from reddit_tree.records import JsonlSink
from reddit_tree.render import render_tree

console = Console()
log = get_logger("cli")


async def refresh_token(user_agent: str) -> str | None:
    """Refresh and store the access token using the saved OAuth credentials."""
    credentials = get_client_credentials()
    refresh = get_refresh_token()
    if not credentials or not refresh:
        console.print(
            "[red]Error: client_id, client_secret and refresh_token must be in the config to refresh.[/]"
        )
        return None
    try:
        token = await refresh_access_token(*credentials, refresh, user_agent=user_agent)
    except TransportError as e:
        console.print(f"[red]OAuth token refresh failed: {e}[/]")
        return None
    save_config("access_token", token)
    return token


async def list_threads(client: RedditClient) -> None:
    choices = await client.fetch_hot_threads()
    for choice in choices:
        console.print(f"[cyan]{choice.name}[/]  {choice.label}")


async def main(args) -> int:
    # Save for next time if explicit
    if args.subreddit:
        save_config("subreddit", args.subreddit)
    if args.token:
        save_config("access_token", args.token)

    settings = load_settings()
    token = args.token or get_access_token()
    if args.refresh:
        token = await refresh_token(settings.user_agent)

    if not token:
        console.print(
            "[red]Error: no access token. Pass --token once to save it, or --refresh.[/]"
        )
        return 1

    async with RedditClient(
        token,
        subreddit=settings.subreddit,
        user_agent=settings.user_agent,
        timeout=settings.timeout,
    ) as client:
        if args.list:
            try:
                await list_threads(client)
            except TransportError as e:
                console.print(f"[red]Could not list threads: {e}[/]")
                return 1
            return 0

        if not args.thread_id:
            console.print("[red]Error: thread id required.[/]")
            console.print("Usage: uv run cli.py <thread_id>")
            return 1

        sink = JsonlSink()
        engine = CommentTreeFetchEngine(
            client,
            args.thread_id,
            sink,
            max_batch=settings.max_batch,
            concurrency=settings.concurrency,
        )
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as progress:
            progress.add_task(f"[cyan]Fetching thread {args.thread_id}...", total=None)
            try:
                summary = await engine.run()
            except FatalRootFetch as e:
                console.print(f"[red]{e}[/]")
                return 1
            except TreeInvariantError as e:
                console.print(f"[red]Comment tree of {args.thread_id} is inconsistent: {e}[/]")
                return 1

    log.info("thread fetched", thread_id=summary.thread_id, nodes=summary.nodes_emitted)
    console.print(
        f"[green]Fetched {summary.nodes_emitted} node(s)[/] "
        f"[dim]({summary.batches_processed} batch(es), {summary.batches_failed} failed, "
        f"{summary.malformed_entries} malformed, {summary.nodes_skipped} skipped)[/]"
    )

    if args.output:
        sink.write(Path(args.output))
        console.print(f"[dim]Wrote {len(sink.nodes)} record(s) to {args.output}[/]")
    if args.tree:
        console.print(render_tree(sink.nodes))
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Load a reddit thread and its entire comment tree."
    )
    parser.add_argument("thread_id", nargs="?", help="Thread id, e.g. 49jkhn")
    parser.add_argument("--subreddit", help="Subreddit to load from (saved)")
    parser.add_argument("--token", help="OAuth access token (saved)")
    parser.add_argument(
        "--refresh", action="store_true", help="Refresh the access token first"
    )
    parser.add_argument(
        "--list", action="store_true", help="List hot threads to choose from"
    )
    parser.add_argument("--output", "-o", help="Write records as JSON lines")
    parser.add_argument("--tree", action="store_true", help="Print the comment tree")
    parser.add_argument("--log-level", default="WARNING", help="Log level")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    configure_logging(args.log_level)
    sys.exit(asyncio.run(main(args)))
