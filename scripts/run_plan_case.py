# scripts/run_plan_case.py

import argparse
import asyncio
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from langchain_core.embeddings import DeterministicFakeEmbedding

from journal_rag.config import ExecutorConfig
from journal_rag.executor.adapters import InMemoryIdempotencyCache, LangChainEmbedder, StaticStore
from journal_rag.orchestrator import PlanOrchestrator, handle_plan_request
from scripts.case_utils import get_case_id, resolve_cases, write_artifact

DEFAULT_OWNER_ID = "00000000-0000-4000-8000-000000000001"


async def run_single_case(
    case_path: Path,
    case: Dict[str, Any],
    *,
    run_id: str,
    owner_id: str,
    now: str,
    config: ExecutorConfig,
) -> None:
    """Run one plan case against its fixture store."""
    case_id = get_case_id(case_path, case)

    fixture = case.get("store") or {}
    store = StaticStore(entries=fixture.get("entries"), sql_results=fixture.get("sql_results"))
    embedder = LangChainEmbedder(DeterministicFakeEmbedding(size=int(fixture.get("embedding_size", 16))))

    orchestrator = PlanOrchestrator(
        store=store,
        embedder=embedder,
        config=config,
        idempotency=InMemoryIdempotencyCache(),
    )

    body = {
        "plan": case.get("plan"),
        "timeRange": case.get("timeRange"),
        "requestId": case.get("requestId", f"{run_id}-{case_id}"),
        "message": case.get("message"),
    }

    print(f"\nRunning plan case: {case_id}")
    out = await handle_plan_request(body, caller_id=owner_id, orchestrator=orchestrator, now=now or None)
    print("  ✓ Completed")

    if out.get("fallbackUsed"):
        print(f"  ⚠ Fallback used (confidence={out.get('confidence')})")
    if out.get("errors"):
        print(f"  ⚠ Produced errors: {out['errors']}")
    for r in out.get("results", []):
        m = r["combinedMetrics"]
        print(
            f"  {r['subQuestionId']}: sql={m['sqlCount']} vector={m['vectorCount']} "
            f"total={m['totalCount']} pct={m['combinedPercentage']} errors={len(r['errors'])}"
        )

    artifacts_dir = Path("artifacts/plan_eval")
    write_artifact(artifacts_dir, run_id, case_id, "input", case)
    write_artifact(artifacts_dir, run_id, case_id, "response", out)
    write_artifact(artifacts_dir, run_id, case_id, "executed_sql", store.executed)

    print(f"Artifacts written to: {artifacts_dir / run_id / case_id}")


def main():
    parser = argparse.ArgumentParser(
        description="Run plan case(s) through the orchestrator against fixture stores.\n\n"
        "Supports both single cases and glob patterns:\n"
        "  --case tests/plan_eval/cases/c001_*.json\n"
        "  --case 'tests/plan_eval/cases/**/*.json'",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--case",
        required=True,
        help="Path to case JSON or glob pattern (e.g., tests/plan_eval/cases/c001_*.json)",
    )
    parser.add_argument(
        "--run-id",
        default="manual",
        help="Run id for artifacts (default: manual)",
    )
    parser.add_argument(
        "--owner-id",
        default=DEFAULT_OWNER_ID,
        help="Caller identity bound into ownership predicates",
    )
    parser.add_argument(
        "--now",
        default="",
        help="ISO instant anchoring shorthand time directives (default: current UTC)",
    )

    args = parser.parse_args()

    cases = resolve_cases(args.case)
    print(f"Found {len(cases)} case(s) to process")

    config = ExecutorConfig.from_env()

    for i, (case_path, case_data) in enumerate(cases, 1):
        if len(cases) > 1:
            print(f"\n{'='*60}")
            print(f"Processing case {i}/{len(cases)}: {case_path.name}")
            print(f"{'='*60}")

        try:
            asyncio.run(
                run_single_case(
                    case_path,
                    case_data,
                    run_id=args.run_id,
                    owner_id=args.owner_id,
                    now=args.now,
                    config=config,
                )
            )
        except Exception as e:
            print(f"\n❌ Error processing {case_path.name}: {e}")
            if len(cases) == 1:
                raise
            continue

    print(f"\n{'='*60}")
    print(f"✓ Completed {len(cases)} case(s)")
    print(f"{'='*60}")


if __name__ == "__main__":
    main()
