"""CLI command for warming the cache.

Meant to run as a deployment hook after a release. Prints the warming
report as JSON and exits with:

- 0: everything warmed
- 1: partial warm (some dimensions failed)
- 2: nothing warmed, or the catalog database was unreachable

Usage:
    storefront warm
    storefront warm --max-pages 5 --concurrency 10
"""

from __future__ import annotations

import asyncio
import dataclasses
from typing import Any

import orjson
import typer

from storefront.cache.redis import RedisStore, close_redis, get_redis
from storefront.cache.service import CacheService
from storefront.cache.warmer import CacheWarmer, WarmPlan
from storefront.catalog.source import SqlCatalogSource
from storefront.config import settings
from storefront.errors import WarmAbortedError
from storefront.observability.logging import configure_logging
from storefront.persistence.db import close_db, get_session_factory

app = typer.Typer(help="Warm the Redis cache from the catalog database")

EXIT_CODES = {200: 0, 207: 1, 500: 2}


async def build_warmer(plan: WarmPlan) -> CacheWarmer:
    store = RedisStore(await get_redis())
    return CacheWarmer(CacheService(store), SqlCatalogSource(get_session_factory()), plan)


async def close_connections() -> None:
    await close_redis()
    await close_db()


async def run_warm(plan: WarmPlan) -> tuple[int, dict[str, Any]]:
    """Run one warm pass and return (status code, report body)."""
    warmer = await build_warmer(plan)
    try:
        report = await warmer.run()
    except WarmAbortedError as e:
        return 500, {"success": False, "error": "Cache warming failed", "details": str(e)}
    finally:
        await close_connections()
    return report.status_code, report.to_dict()


@app.callback(invoke_without_command=True)
def warm(
    max_pages: int | None = typer.Option(
        None,
        "--max-pages",
        min=1,
        help="Page cap per listing combination",
    ),
    concurrency: int | None = typer.Option(
        None,
        "--concurrency",
        "-c",
        min=1,
        help="Concurrent writes for products, ratings and listing combinations",
    ),
    pretty: bool = typer.Option(False, "--pretty", help="Indent the JSON report"),
) -> None:
    """Warm every catalog cache key once."""
    configure_logging(json_format=bool(settings.log_json), level=settings.log_level)

    plan = WarmPlan.from_settings()
    if max_pages is not None:
        plan = dataclasses.replace(plan, max_pages=max_pages)
    if concurrency is not None:
        plan = dataclasses.replace(plan, concurrency=concurrency)

    status, body = asyncio.run(run_warm(plan))
    option = orjson.OPT_INDENT_2 if pretty else 0
    typer.echo(orjson.dumps(body, option=option).decode())
    raise typer.Exit(code=EXIT_CODES[status])
