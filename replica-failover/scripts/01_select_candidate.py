"""
Selects the replica that should be promoted after a primary failure
Probes every replica's WAL position and reports the most advanced one
"""
import logging
import sys
from db_config import (
    EVALUATION_DEADLINE_SECONDS,
    MAX_PROBE_WORKERS,
    PROBE_TIMEOUT_SECONDS,
    load_replica_endpoints,
)
from candidate_selector import CandidateSelector
from utils import format_selection_report, save_selection_to_file

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="PostgreSQL Failover Candidate Selector")
    parser.add_argument(
        "--hosts",
        default=None,
        help="Comma separated host[:port] list (default: REPLICA_HOSTS from .env)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=PROBE_TIMEOUT_SECONDS,
        help=f"Per-replica connect/query timeout in seconds (default: {PROBE_TIMEOUT_SECONDS})"
    )
    parser.add_argument(
        "--deadline",
        type=float,
        default=EVALUATION_DEADLINE_SECONDS,
        help=f"Deadline for the whole evaluation in seconds (default: {EVALUATION_DEADLINE_SECONDS})"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=MAX_PROBE_WORKERS,
        help=f"Maximum concurrent probes (default: {MAX_PROBE_WORKERS})"
    )
    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Don't append the result to logs/selection/selection.jsonl"
    )

    args = parser.parse_args()

    try:
        endpoints = load_replica_endpoints(args.hosts)
        selector = CandidateSelector(max_workers=args.workers, deadline=args.deadline)
        result = selector.select_candidate(endpoints, timeout=args.timeout)
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    print(format_selection_report(result))

    if not args.no_save:
        save_selection_to_file(result)

    if result.has_candidate:
        print(f"selected replica is {result.candidate.label}")
        sys.exit(0)
    sys.exit(2)
