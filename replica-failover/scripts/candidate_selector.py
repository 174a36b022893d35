"""
Selects the most advanced replica as the promotion candidate
Probes every replica concurrently and ranks successes by receive offset
"""
import logging
import queue
import time
from collections import deque
from collections.abc import Sequence
from threading import Thread
from typing import List, Optional

from db_config import EVALUATION_DEADLINE_SECONDS, MAX_PROBE_WORKERS, ReplicaEndpoint
from position_reader import PositionReader
from probe_errors import ProbeDeadlineError, ProbeError, ProbeTimeoutError
from utils import ProbeOutcome, SelectionResult

logger = logging.getLogger(__name__)


def pick_most_advanced(outcomes: List[ProbeOutcome]) -> Optional[int]:
    """
    Return the index of the successful outcome with the greatest receive offset

    Ties go to the earliest outcome in the list, so callers must pass
    outcomes in input order, not completion order.
    """
    best = None
    for index, outcome in enumerate(outcomes):
        if not outcome.succeeded:
            continue
        if best is None or outcome.position.receive_offset > outcomes[best].position.receive_offset:
            best = index
    return best


class CandidateSelector:
    """Runs one evaluation round per call; holds no state between rounds"""

    def __init__(self,
                 reader: Optional[PositionReader] = None,
                 max_workers: int = MAX_PROBE_WORKERS,
                 deadline: Optional[float] = EVALUATION_DEADLINE_SECONDS):
        """
        Args:
            reader: Position reader used for every probe
            max_workers: Upper bound on concurrently running probes
            deadline: Seconds the whole round may take, None for no extra limit
                beyond the per-probe timeout
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        if deadline is not None and deadline <= 0:
            raise ValueError(f"deadline must be positive, got {deadline}")
        self.reader = reader or PositionReader()
        self.max_workers = max_workers
        self.deadline = deadline

    def _validate(self, endpoints, timeout: float) -> List[ReplicaEndpoint]:
        if isinstance(endpoints, (str, bytes)) or not isinstance(endpoints, Sequence):
            raise TypeError(f"endpoints must be a sequence of ReplicaEndpoint, got {type(endpoints).__name__}")
        for endpoint in endpoints:
            if not isinstance(endpoint, ReplicaEndpoint):
                raise TypeError(f"not a ReplicaEndpoint: {endpoint!r}")
        if timeout is None or timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        return list(endpoints)

    def _probe(self, index: int, endpoint: ReplicaEndpoint, timeout: float, results: queue.Queue):
        try:
            outcome = self.reader.read_position(endpoint, timeout)
        except Exception as e:
            logger.exception(f"Unexpected error probing {endpoint.label}")
            outcome = ProbeOutcome.failure(endpoint, ProbeError(f"unexpected {type(e).__name__}: {e}"))
        results.put((index, outcome))

    def probe_all(self, endpoints: List[ReplicaEndpoint], timeout: float) -> List[ProbeOutcome]:
        """
        Probe every endpoint concurrently, returning outcomes in input order

        At most max_workers probes run at once. Each running probe is given
        `timeout` seconds from the moment it starts; past that it is recorded
        as a timeout and its worker is abandoned. Probes still running or
        queued when the round deadline passes are recorded as deadline
        failures.
        """
        outcomes: List[Optional[ProbeOutcome]] = [None] * len(endpoints)
        results = queue.Queue()
        pending = deque(enumerate(endpoints))
        running = {}
        round_ends = None if self.deadline is None else time.monotonic() + self.deadline

        while pending or running:
            while pending and len(running) < self.max_workers:
                index, endpoint = pending.popleft()
                running[index] = time.monotonic() + timeout
                # Daemon workers: a hung replica must not keep the process alive
                Thread(
                    target=self._probe,
                    args=(index, endpoint, timeout, results),
                    name=f"replica-probe-{index}",
                    daemon=True,
                ).start()

            wake_at = min(running.values())
            if round_ends is not None:
                wake_at = min(wake_at, round_ends)

            # Block for the first answer, then take whatever else has arrived
            wait_for = max(0.0, wake_at - time.monotonic())
            while True:
                try:
                    index, outcome = results.get(timeout=wait_for)
                except queue.Empty:
                    break
                # Late answers from abandoned probes are ignored
                if running.pop(index, None) is not None:
                    outcomes[index] = outcome
                wait_for = 0.0

            now = time.monotonic()
            for index, probe_ends in list(running.items()):
                if now >= probe_ends:
                    del running[index]
                    logger.warning(f"Probe of {endpoints[index].label} exceeded its timeout of {timeout}s")
                    outcomes[index] = ProbeOutcome.failure(
                        endpoints[index],
                        ProbeTimeoutError(f"no result within probe timeout of {timeout}s"),
                    )

            if round_ends is not None and now >= round_ends:
                for index in list(running) + [index for index, _ in pending]:
                    logger.warning(f"Probe of {endpoints[index].label} did not finish within {self.deadline}s")
                    outcomes[index] = ProbeOutcome.failure(
                        endpoints[index],
                        ProbeDeadlineError(f"no result within evaluation deadline of {self.deadline}s"),
                    )
                break

        return outcomes

    def select_candidate(self, endpoints, timeout: float) -> SelectionResult:
        """
        Pick the replica with the greatest receive offset

        Args:
            endpoints: Replicas to evaluate, in a stable order
            timeout: Per-probe timeout in seconds

        Returns:
            SelectionResult with the winning endpoint, or no candidate when
            no probe succeeded. Per-endpoint outcomes are kept in input order.
        """
        endpoints = self._validate(endpoints, timeout)
        logger.info(f"Evaluating {len(endpoints)} replicas (timeout {timeout}s, deadline {self.deadline}s)")

        outcomes = self.probe_all(endpoints, timeout)
        for outcome in outcomes:
            if not outcome.succeeded:
                logger.warning(f"Excluding {outcome.endpoint.label}: {outcome.reason}")

        best = pick_most_advanced(outcomes)
        if best is None:
            logger.error("No candidate: none of the replicas reported a replication position")
            return SelectionResult(candidate=None, outcomes=outcomes)

        winner = outcomes[best]
        logger.info(
            f"Selected {winner.endpoint.label} with receive location={winner.position.receive_offset}"
        )
        return SelectionResult(
            candidate=winner.endpoint,
            position=winner.position,
            outcomes=outcomes,
            candidate_index=best,
        )
