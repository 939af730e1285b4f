import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from match_engine.config import LOG_LEVEL, MATCH_REFRESH_PAGE_SIZE, MATCH_TASK_TIMEOUT_SECONDS
from match_engine.deps import get_cache
from match_engine.services.materializer import CacheMaterializer
from match_engine.services.orchestrator import BatchOrchestrator
from match_engine.services.scoring import CandidateScorer


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Refresh cached new-match feeds (run daily from cron at 02:00)")
    parser.add_argument("--user-id", type=int, default=None, help="Refresh a single user instead of every user")
    parser.add_argument("--page-size", type=int, default=MATCH_REFRESH_PAGE_SIZE)
    parser.add_argument("--task-timeout", type=float, default=MATCH_TASK_TIMEOUT_SECONDS)
    args = parser.parse_args(argv)

    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    orchestrator = BatchOrchestrator(
        CandidateScorer(),
        CacheMaterializer(get_cache()),
        page_size=args.page_size,
        task_timeout_seconds=args.task_timeout,
    )
    if args.user_id is not None:
        ok = orchestrator.run_for_user(args.user_id)
        print(json.dumps({"user_id": args.user_id, "ok": ok}))
        return 0 if ok else 1

    summary = orchestrator.run_daily_refresh()
    print(json.dumps(summary.as_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
