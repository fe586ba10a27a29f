from __future__ import annotations

import asyncio
import hashlib
import time
from typing import Awaitable, Callable, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from pitchedge.core.db import SessionLocal, engine
from pitchedge.core.logger import get_logger

log = get_logger("jobs.runner")

JOB_LOCKS: Dict[str, asyncio.Lock] = {}
JobFn = Callable[[AsyncSession], Awaitable[object]]


def _advisory_key(name: str) -> int:
    digest = hashlib.blake2b(f"pitchedge:{name}".encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") & 0x7FFF_FFFF_FFFF_FFFF


async def _try_advisory_lock(conn, key: int) -> bool:
    row = (await conn.execute(text("SELECT pg_try_advisory_lock(:k) AS ok"), {"k": int(key)})).first()
    return bool(row.ok) if row else False


async def _advisory_unlock(conn, key: int) -> None:
    await conn.execute(text("SELECT pg_advisory_unlock(:k)"), {"k": int(key)})


def _get_lock(name: str) -> asyncio.Lock:
    lock = JOB_LOCKS.get(name)
    if lock is None:
        lock = asyncio.Lock()
        JOB_LOCKS[name] = lock
    return lock


async def run_job(job_name: str, job_fn: JobFn, triggered_by: str | None = None):
    """Run one job in its own session. Failures are logged and rolled back; returns None then."""
    lock = _get_lock(job_name)
    if lock.locked():
        log.warning("job_skip_already_running job=%s", job_name)
        return None
    async with lock:
        key = _advisory_key(job_name)
        async with engine.connect() as lock_conn:
            if not await _try_advisory_lock(lock_conn, key):
                log.warning("job_skip_global_lock job=%s", job_name)
                return None
            try:
                async with SessionLocal() as session:
                    t0 = time.perf_counter()
                    log.info("job_started job=%s triggered_by=%s", job_name, triggered_by)
                    try:
                        result = await job_fn(session)
                    except Exception:
                        log.exception("job_failed job=%s", job_name)
                        await session.rollback()
                        return None
                    dur_ms = int((time.perf_counter() - t0) * 1000)
                    log.info("job_finished job=%s duration_ms=%s", job_name, dur_ms)
                    return result
            finally:
                await _advisory_unlock(lock_conn, key)
