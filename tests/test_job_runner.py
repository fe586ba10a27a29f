import asyncio
from types import SimpleNamespace

from pitchedge.jobs import runner


class _FakeConn:
    def __init__(self, granted=True):
        self.granted = granted
        self.statements = []

    async def execute(self, stmt, params=None):
        sql = str(stmt)
        self.statements.append(sql)
        return SimpleNamespace(first=lambda: SimpleNamespace(ok=self.granted))

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _FakeSession:
    def __init__(self):
        self.rolled_back = False

    async def rollback(self):
        self.rolled_back = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def _install(monkeypatch, granted=True):
    conn = _FakeConn(granted)
    session = _FakeSession()
    monkeypatch.setattr(runner, "engine", SimpleNamespace(connect=lambda: conn))
    monkeypatch.setattr(runner, "SessionLocal", lambda: session)
    return conn, session


def test_run_job_returns_result_and_unlocks(monkeypatch):
    conn, _ = _install(monkeypatch)

    async def _job(_session):
        return {"published": 3}

    assert asyncio.run(runner.run_job("build_predictions", _job)) == {"published": 3}
    assert any("pg_try_advisory_lock" in s for s in conn.statements)
    assert any("pg_advisory_unlock" in s for s in conn.statements)


def test_run_job_failure_rolls_back(monkeypatch):
    conn, session = _install(monkeypatch)

    async def _job(_session):
        raise RuntimeError("boom")

    assert asyncio.run(runner.run_job("evaluate_results", _job)) is None
    assert session.rolled_back
    assert any("pg_advisory_unlock" in s for s in conn.statements)


def test_run_job_skips_when_global_lock_held(monkeypatch):
    _install(monkeypatch, granted=False)
    called = []

    async def _job(_session):
        called.append(1)

    assert asyncio.run(runner.run_job("build_predictions", _job)) is None
    assert called == []


def test_advisory_key_is_stable_and_positive():
    key = runner._advisory_key("build_predictions")
    assert key == runner._advisory_key("build_predictions")
    assert 0 <= key < 2**63
    assert key != runner._advisory_key("evaluate_results")


def test_scheduler_registers_both_jobs():
    from pitchedge import scheduler_runner

    scheduler = scheduler_runner.build_scheduler()
    jobs = {job.id: job for job in scheduler.get_jobs()}
    assert set(jobs) == {"build_predictions", "evaluate_results"}
    assert jobs["build_predictions"].args[0] == "build_predictions"
    assert jobs["evaluate_results"].kwargs == {"triggered_by": "scheduler"}
