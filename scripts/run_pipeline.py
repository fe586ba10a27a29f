import argparse
import asyncio
import json
import os
import sys

from dotenv import load_dotenv

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def load_env_file(path: str):
    if not path:
        return
    if path.lower().endswith(".json"):
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for k, v in data.items():
            os.environ[str(k)] = str(v)
    else:
        load_dotenv(path, override=True)


async def run_pipeline(step: str):
    from pitchedge.core.db import init_db
    from pitchedge.core.http import close_http_clients, init_http_clients
    from pitchedge.jobs import build_predictions, evaluate_results
    from pitchedge.jobs.runner import run_job

    await init_db()
    await init_http_clients()
    out = {}
    try:
        if step in ("build", "all"):
            out["build_predictions"] = await run_job("build_predictions", build_predictions.run, triggered_by="cli")
        if step in ("settle", "all"):
            out["evaluate_results"] = await run_job("evaluate_results", evaluate_results.run, triggered_by="cli")
    finally:
        await close_http_clients()
    return out


async def run_dry():
    """Build against the live provider with an in-process cache and ledger; nothing is persisted."""
    from pitchedge.core.http import close_http_clients, init_http_clients
    from pitchedge.data.providers.cache import TTLCache
    from pitchedge.jobs import build_predictions
    from pitchedge.services.history_store import InMemoryHistoryStore
    from pitchedge.services.ledger import PublicationLedger

    await init_http_clients()
    try:
        ledger = PublicationLedger(InMemoryHistoryStore())
        return {"build_predictions": await build_predictions.build(TTLCache(), ledger)}
    finally:
        await close_http_clients()


def main():
    parser = argparse.ArgumentParser(description="Run the prediction pipeline once")
    parser.add_argument("--config", help="Path to .env-style file or JSON with overrides", default=None)
    parser.add_argument("--step", choices=("build", "settle", "all"), default="all")
    parser.add_argument("--dry-run", action="store_true", help="Build only, in memory, without a database")
    args = parser.parse_args()
    load_dotenv()
    if args.config:
        load_env_file(args.config)

    if args.dry_run:
        if args.step == "settle":
            raise SystemExit("--dry-run only supports the build step")
        result = asyncio.run(run_dry())
    else:
        result = asyncio.run(run_pipeline(args.step))
    print(json.dumps(result, indent=2, ensure_ascii=False, default=str))


if __name__ == "__main__":
    main()
