from __future__ import annotations

import sys
import time

import uvicorn
from pydantic import ValidationError

from medsim_api.config.settings import Settings, get_settings


def _run_migrations(max_attempts: int = 8, base_delay: float = 1.0) -> None:
    from asyncpg import PostgresError
    from sqlalchemy.exc import OperationalError

    from medsim_api.db.migrations import run_migrations

    attempt = 1
    while True:
        try:
            run_migrations()
            return
        except (OperationalError, PostgresError) as exc:
            if attempt >= max_attempts:
                raise
            wait = base_delay * attempt
            print(
                f"[main] Database not ready (attempt {attempt}/{max_attempts}): {exc}. "
                f"Retrying in {wait:.1f}s...",
                file=sys.stderr,
            )
            time.sleep(wait)
            attempt += 1


def _run_api(settings: Settings) -> None:
    from fastapi import FastAPI

    from medsim_api.app import app

    reload_enabled = settings.environment == "local"
    app_target: FastAPI | str = "medsim_api.app:app" if reload_enabled else app
    uvicorn.run(
        app_target,
        host=settings.api_host,
        port=settings.api_port,
        log_level=_uvicorn_log_level(settings.log_level),
        reload=reload_enabled,
    )


def _uvicorn_log_level(level: str) -> str:
    return "trace" if level == "TRACE" else level.lower()


def _bootstrap_settings() -> Settings:
    try:
        return get_settings()
    except ValidationError as exc:
        problems = sorted(
            {".".join(str(part) for part in error["loc"]) for error in exc.errors()}
        )
        print(
            "[main] Invalid configuration. "
            "Check environment variables (prefix MEDSIM_) for: "
            f"{', '.join(problems)}",
            file=sys.stderr,
        )
        raise


def main() -> None:
    try:
        settings = _bootstrap_settings()
    except ValidationError:
        sys.exit(1)

    if settings.persist_stats:
        _run_migrations()
    if not settings.gemini_api_key:
        print(
            "[main] MEDSIM_GEMINI_API_KEY is not set; cases will come from the offline bank.",
            file=sys.stderr,
        )

    _run_api(settings)


if __name__ == "__main__":
    main()
