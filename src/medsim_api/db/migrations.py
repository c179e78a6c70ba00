from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import sqlalchemy as sa
from alembic import command
from alembic.config import Config
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from medsim_api.config.settings import get_settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CFG_PATH = PROJECT_ROOT / "alembic.ini"
DEFAULT_SCRIPT_PATH = PROJECT_ROOT / "alembic"
HEAD_REVISION = "0001_initial_schema"


def _resolve_path(*, env_var: str, default: Path, fallback: Path) -> Path:
    candidate = os.environ.get(env_var)
    if candidate and Path(candidate).exists():
        return Path(candidate)
    for path in (default, fallback):
        if path.exists():
            return path
    raise RuntimeError(
        f"Alembic resource not found. Checked: {default}, {fallback}. "
        f"Set {env_var} to the correct location."
    )


def run_migrations(target_revision: str = "head") -> None:
    """Upgrade the stats database, then bootstrap from metadata if alembic left no version."""
    if os.environ.get("MEDSIM_SKIP_MIGRATIONS", "").lower() in {"1", "true"}:
        logger.info("Skipping database migrations")
        return

    settings = get_settings()
    cwd = Path.cwd()
    cfg_path = _resolve_path(
        env_var="MEDSIM_ALEMBIC_CONFIG",
        default=DEFAULT_CFG_PATH,
        fallback=cwd / "alembic.ini",
    )
    script_location = _resolve_path(
        env_var="MEDSIM_ALEMBIC_PATH",
        default=DEFAULT_SCRIPT_PATH,
        fallback=cwd / "alembic",
    )

    config = Config(str(cfg_path))
    config.set_main_option("script_location", str(script_location))
    config.set_main_option("sqlalchemy.url", settings.database_url)

    logger.info(
        "Running database migrations",
        extra={"config": str(cfg_path), "scripts": str(script_location), "target": target_revision},
    )
    try:
        command.upgrade(config, target_revision)
    except Exception as exc:  # pragma: no cover - surfaced during startup
        raise RuntimeError(f"Failed to apply database migrations: {exc}") from exc

    _ensure_schema_created()


def _ensure_schema_created() -> None:
    asyncio.run(_bootstrap_schema(get_settings().database_url))


async def _bootstrap_schema(database_url: str) -> None:
    engine = create_async_engine(database_url, echo=False)
    try:
        try:
            async with engine.connect() as conn:
                result = await conn.execute(
                    sa.text("SELECT version_num FROM alembic_version LIMIT 1")
                )
                has_version = result.first() is not None
        except SQLAlchemyError:
            has_version = False

        if has_version:
            return

        logger.warning("Alembic version table missing; creating schema via metadata")
        from medsim_api.db import Base

        alembic_table = sa.Table(
            "alembic_version",
            sa.MetaData(),
            sa.Column("version_num", sa.String(32), primary_key=True),
        )

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            await conn.run_sync(alembic_table.create, checkfirst=True)
            await conn.execute(sa.delete(alembic_table))
            await conn.execute(sa.insert(alembic_table).values(version_num=HEAD_REVISION))
    finally:
        await engine.dispose()


if __name__ == "__main__":  # pragma: no cover
    run_migrations()


__all__ = ["HEAD_REVISION", "run_migrations"]
