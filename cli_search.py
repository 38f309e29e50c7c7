"""Terminal client that runs the search pipeline in-process."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import warnings
from pathlib import Path
from typing import Iterable

from shopsearch.config import Settings, settings
from shopsearch.context import build_context
from shopsearch.entities import Query, QueryOptions
from shopsearch.errors import AllSourcesFailedError, FilterExhaustionWarning, InvalidQueryError
from shopsearch.models import SearchResultPage
from shopsearch.pipeline import SearchPipeline

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"
SLOW_MS = 2000


async def perform_query(pipeline: SearchPipeline, query: str, options: QueryOptions) -> SearchResultPage | None:
    try:
        return await pipeline.search(Query(query, options))
    except InvalidQueryError as exc:
        print(f"{RED}{exc}{RESET}")
    except AllSourcesFailedError as exc:
        print(f"{RED}No results: {exc}{RESET}")
    return None


def pretty_print_response(query: str, page: SearchResultPage | None) -> None:
    if page is None:
        return
    eta = page.searchInfo.searchTimeMs
    color = GREEN if eta < SLOW_MS else RED
    eta_label = f"{color}{eta:.1f} ms{RESET}"
    pagination = page.pagination
    print(
        f"Query: {query} | category: {page.searchInfo.category} | "
        f"results: {pagination.totalResults} | page {pagination.currentPage}/{pagination.totalPages} | ETA: {eta_label}"
    )
    offset = (pagination.currentPage - 1) * settings.page_size
    for idx, item in enumerate(page.products, start=offset + 1):
        score_repr = f"{item.score:.3f}" if item.score is not None else "-"
        print(f"  {idx:02d}. score={score_repr} | {item.price or '-'} | {item.domain} | {item.title}")


async def run(queries: Iterable[str], config: Settings, options: QueryOptions) -> None:
    context = build_context(config)
    pipeline = SearchPipeline(context)
    try:
        for query in queries:
            pretty_print_response(query, await perform_query(pipeline, query, options))
    finally:
        await context.aclose()


def interactive_queries() -> Iterable[str]:
    print("Interactive product search. Type 'exit' to quit.")
    while True:
        try:
            query = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not query:
            continue
        if query.lower() in {"exit", "quit"}:
            return
        yield query


def batch_queries(file_path: Path) -> Iterable[str]:
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            query = line.strip()
            if query:
                yield query


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the product search pipeline")
    parser.add_argument("query", nargs="?", help="Query string. If omitted, starts REPL mode.")
    parser.add_argument("--batch", type=Path, help="File with queries to execute line by line")
    parser.add_argument("--page", type=int, default=1, help="Result page to show")
    parser.add_argument(
        "--sort",
        choices=["relevance", "price_low", "price_high", "rating"],
        default="relevance",
        help="Sort order applied over the fused ranking",
    )
    parser.add_argument("--sample", action="store_true", help="Search only the offline sample catalog")
    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(level=logging.getLevelName(settings.log_level.upper()), format="%(levelname)s %(name)s: %(message)s")
    logging.captureWarnings(True)
    warnings.simplefilter("always", FilterExhaustionWarning)
    config = dataclasses.replace(settings, rate_limit_interval_seconds=0.0, cache_enabled=False)
    if args.sample:
        config = dataclasses.replace(config, sample_catalog_enabled=True)
    options = QueryOptions(sort_by=args.sort, page=max(1, args.page))

    if args.batch:
        queries: Iterable[str] = batch_queries(args.batch)
    elif args.query:
        queries = [args.query]
    else:
        queries = interactive_queries()
    asyncio.run(run(queries, config, options))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
