"""
Baseline Monitor
================
Entry point.

  python src/main.py run [-v]                 one monitoring run, report, exit
  python src/main.py serve [--host --port]    admin API (trigger runs, inspect baselines)

Exit codes for `run`: 0 when the run completed (whatever the probe verdicts),
1 on configuration or unexpected errors.
"""

import sys
import asyncio
import logging
import argparse
from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.config import ConfigError, load_resources, load_settings
from core.database import init_db
from routers import apis, baselines, runs
from services.report import output_results
from services.runner import run_task

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

logger = logging.getLogger("baseline_monitor")


def configure_logging(level: str = "INFO", verbose: bool = False) -> None:
    resolved = logging.DEBUG if verbose else getattr(logging, level, logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logger.setLevel(resolved)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="Baseline Monitor", lifespan=lifespan)
    app.include_router(runs.router)
    app.include_router(apis.router)
    app.include_router(baselines.router)
    return app


app = create_app()


async def run_once(verbose: bool = False) -> int:
    try:
        settings = load_settings()
        resources = load_resources()
    except ConfigError as e:
        configure_logging(verbose=verbose)
        logger.error(f"❌ {e}")
        return 1

    configure_logging(settings.settings.logging.log_level, verbose)
    await init_db()
    result = await run_task(settings, resources, verbose=verbose)
    output_results(result, settings)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="baseline-monitor", description="API regression monitor")
    sub = parser.add_subparsers(dest="command")

    run_parser = sub.add_parser("run", help="execute one monitoring run")
    run_parser.add_argument("-v", "--verbose", action="store_true")

    serve_parser = sub.add_parser("serve", help="start the admin API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    if args.command == "serve":
        import uvicorn
        configure_logging()
        uvicorn.run(app, host=args.host, port=args.port)
        return 0

    verbose = getattr(args, "verbose", False)
    try:
        code = asyncio.run(run_once(verbose))
    except Exception as e:
        logger.exception(f"💥 An error occurred during the run: {e}")
        return 1

    if code == 0:
        logger.info("✅ Run completed")
    return code


if __name__ == "__main__":
    sys.exit(main())
