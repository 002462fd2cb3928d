"""CLI entrypoint for the catalog recommendation workflow."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any, Dict

from rich.table import Table

from config import get_settings
from intelligence.events import ERROR, FINAL_RESULT, ITEM_FOUND, STAGE_COMPLETED, STAGE_STARTED
from intelligence.graph import RecommendationGraph
from storage.cache import get_cache
from utils.exceptions import CatalogCuratorError
from utils.logger import console, setup_project_logging


def _render_event(message: Dict[str, Any]) -> None:
    event = message.get("event")
    if event == STAGE_STARTED:
        console.print(f"[dim]> {message.get('stage')}[/dim]")
    elif event == STAGE_COMPLETED:
        console.print(f"[dim]  done {message.get('stage')} ({message.get('duration_seconds')}s)[/dim]")
    elif event == ITEM_FOUND:
        console.print(f"  [green]+[/green] {message.get('title')} ({message.get('year') or '?'})")
    elif event == ERROR:
        console.print(f"[red]Error:[/red] {message.get('message')}")


def _render_final(state: Dict[str, Any]) -> None:
    recommendations = list(state.get("final_recommendations") or [])
    if not recommendations:
        console.print("\n[yellow]No recommendations matched the request.[/yellow]")
        return

    table = Table(title="Recommendations")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Year", justify="right")
    table.add_column("Genres")
    table.add_column("Confidence", justify="right")
    table.add_column("Reasoning")
    for index, evaluation in enumerate(recommendations, 1):
        item = evaluation.item
        table.add_row(
            str(index),
            item.title,
            str(item.year or ""),
            ", ".join(item.tags),
            f"{evaluation.confidence_score:.2f}",
            evaluation.reasoning,
        )
    console.print(table)


async def _recommend(args: argparse.Namespace) -> int:
    settings = get_settings()
    graph = RecommendationGraph(
        settings=settings,
        cache=get_cache(provider=args.cache or None),
        progress_callback=None if args.quiet else _render_event,
    )
    try:
        state = await graph.run(args.request)
    except CatalogCuratorError as e:
        console.print(f"[red]Run failed:[/red] {e}")
        return 1
    finally:
        await graph.aclose()

    if args.json:
        payload = {
            "phase": state.get("phase"),
            "recommendations": [
                evaluation.model_dump(mode="json") for evaluation in state.get("final_recommendations") or []
            ],
            "tokens": graph.token_tracker.breakdown(),
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        _render_final(state)
    return 0


def _cache_stats(args: argparse.Namespace) -> int:
    cache = get_cache(provider=args.cache or None)
    try:
        cache.initialize()
        stats = cache.stats()
    except CatalogCuratorError as e:
        console.print(f"[red]Cache unavailable:[/red] {e}")
        return 1
    finally:
        cache.close()
    print(json.dumps(stats.model_dump(mode="json"), indent=2))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Catalog Curator CLI")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    rec = sub.add_parser("recommend")
    rec.add_argument("request")
    rec.add_argument("--cache", default="", help="sqlite or memory")
    rec.add_argument("--json", action="store_true")
    rec.add_argument("--quiet", action="store_true")

    stats = sub.add_parser("cache-stats")
    stats.add_argument("--cache", default="", help="sqlite or memory")

    args = parser.parse_args()
    setup_project_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.command == "recommend":
        raise SystemExit(asyncio.run(_recommend(args)))
    if args.command == "cache-stats":
        raise SystemExit(_cache_stats(args))


if __name__ == "__main__":
    main()
