"""Checksum-tracked SQL migrations applied at startup."""
from __future__ import annotations

import hashlib
from pathlib import Path

import asyncpg  # type: ignore[import-untyped]
import structlog

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def load_migrations(migrations_dir: Path) -> dict[str, str]:
    """Return ``{version: sql}`` for every ``*.sql`` file, ordered by name."""
    migrations: dict[str, str] = {}
    for path in sorted(migrations_dir.glob("*.sql")):
        migrations[path.stem] = path.read_text(encoding="utf-8")
    return migrations


def checksum(sql: str) -> str:
    return hashlib.sha256(sql.encode("utf-8")).hexdigest()


def pending_migrations(
    migrations: dict[str, str], applied: dict[str, str]
) -> list[tuple[str, str, str]]:
    """Return ``(version, sql, checksum)`` for migrations not applied yet.

    Raises ``RuntimeError`` if an applied migration file changed on disk.
    """
    pending = []
    for version, sql in migrations.items():
        digest = checksum(sql)
        if version in applied:
            if applied[version] != digest:
                raise RuntimeError(
                    f"Checksum mismatch for {version}: {applied[version]} (db) != {digest} (file)"
                )
            continue
        pending.append((version, sql, digest))
    return pending


async def apply_migrations(pool: asyncpg.Pool, migrations_dir: Path = MIGRATIONS_DIR) -> int:
    """Apply pending migrations; returns how many were applied."""
    if not migrations_dir.exists():
        logger.warning("migrations directory not found", path=str(migrations_dir))
        return 0
    migrations = load_migrations(migrations_dir)

    async with pool.acquire() as conn:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version text PRIMARY KEY,
                checksum text NOT NULL,
                applied_at timestamptz NOT NULL DEFAULT now()
            );
            """
        )
        rows = await conn.fetch("SELECT version, checksum FROM schema_migrations")
        pending = pending_migrations(migrations, {row["version"]: row["checksum"] for row in rows})
        for version, sql, digest in pending:
            logger.info("applying migration", version=version)
            async with conn.transaction():
                await conn.execute(sql)
                await conn.execute(
                    "INSERT INTO schema_migrations (version, checksum) VALUES ($1, $2)",
                    version,
                    digest,
                )
    if pending:
        logger.info("migrations applied", count=len(pending))
    return len(pending)
