"""
Shared utilities for candidate evaluation
Contains the probe/selection result types and report helpers
"""
import logging
import json
from datetime import datetime
from typing import List, Optional
from dataclasses import dataclass, field
from pathlib import Path

from db_config import ReplicaEndpoint
from probe_errors import ProbeError

logger = logging.getLogger(__name__)

MAX_WAL_OFFSET = 2 ** 64 - 1

BYTE_UNITS = ("KB", "MB", "GB", "TB", "PB")

DEFAULT_SELECTION_LOG = Path(__file__).parent.parent / 'logs' / 'selection' / 'selection.jsonl'


@dataclass(frozen=True)
class ReplicationPosition:
    """Byte offsets from WAL origin 0/0 reported by one standby"""
    receive_offset: int
    replay_offset: int

    @property
    def replay_backlog(self) -> int:
        """Bytes received but not yet replayed"""
        return max(self.receive_offset - self.replay_offset, 0)

    @property
    def is_consistent(self) -> bool:
        """Replay should never be ahead of receive on a healthy standby"""
        return self.replay_offset <= self.receive_offset


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of probing one endpoint: a position or an error, never both"""
    endpoint: ReplicaEndpoint
    position: Optional[ReplicationPosition] = None
    error: Optional[ProbeError] = None

    @classmethod
    def success(cls, endpoint: ReplicaEndpoint, position: ReplicationPosition) -> "ProbeOutcome":
        return cls(endpoint=endpoint, position=position)

    @classmethod
    def failure(cls, endpoint: ReplicaEndpoint, error: ProbeError) -> "ProbeOutcome":
        return cls(endpoint=endpoint, error=error)

    @property
    def succeeded(self) -> bool:
        return self.position is not None

    @property
    def reason(self) -> Optional[str]:
        """Why this endpoint was excluded, None on success"""
        return str(self.error) if self.error is not None else None

    def warnings(self) -> List[str]:
        warnings = []
        if self.position is not None and not self.position.is_consistent:
            warnings.append(
                f"Replay offset {self.position.replay_offset} is ahead of "
                f"receive offset {self.position.receive_offset}"
            )
        return warnings

    def to_dict(self) -> dict:
        data = {
            'endpoint': self.endpoint.label,
            'host': self.endpoint.host,
            'port': self.endpoint.port,
            'succeeded': self.succeeded,
        }
        if self.position is not None:
            data['receive_offset'] = self.position.receive_offset
            data['replay_offset'] = self.position.replay_offset
        else:
            data['error_kind'] = self.error.kind
            data['error_stage'] = self.error.stage
            data['reason'] = self.reason
        return data


@dataclass(frozen=True)
class SelectionResult:
    """Outcome of one evaluation round"""
    candidate: Optional[ReplicaEndpoint]
    position: Optional[ReplicationPosition] = None
    outcomes: List[ProbeOutcome] = field(default_factory=list)
    candidate_index: Optional[int] = None

    @property
    def has_candidate(self) -> bool:
        return self.candidate is not None

    @property
    def successes(self) -> List[ProbeOutcome]:
        return [outcome for outcome in self.outcomes if outcome.succeeded]

    @property
    def failures(self) -> List[ProbeOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    def to_dict(self) -> dict:
        return {
            'candidate': self.candidate.label if self.candidate else None,
            'receive_offset': self.position.receive_offset if self.position else None,
            'outcomes': [outcome.to_dict() for outcome in self.outcomes],
        }


def format_bytes(bytes_val: Optional[int]) -> str:
    """Human-readable byte count; negative values keep their sign"""
    if bytes_val is None:
        return "N/A"

    sign = "-" if bytes_val < 0 else ""
    size = abs(bytes_val)
    if size < 1024:
        return f"{sign}{size} B"

    for unit in BYTE_UNITS:
        size /= 1024
        if size < 1024 or unit == BYTE_UNITS[-1]:
            return f"{sign}{size:.2f} {unit}"


def format_selection_report(result: SelectionResult) -> str:
    """Format a selection round for console display"""
    output = [
        f"\n{'='*80}",
        f"Failover Candidate Selection - {datetime.now().isoformat()}",
        f"{'='*80}",
        f"Replicas probed: {len(result.outcomes)} "
        f"({len(result.successes)} ok, {len(result.failures)} failed)",
        "",
    ]

    for outcome in result.outcomes:
        if outcome.succeeded:
            position = outcome.position
            output.append(
                f"✓ {outcome.endpoint.label}: receive location={position.receive_offset} "
                f"replay location={position.replay_offset} "
                f"(replay backlog {format_bytes(position.replay_backlog)})"
            )
            for warning in outcome.warnings():
                output.append(f"    ! {warning}")
        else:
            output.append(f"✗ {outcome.endpoint.label}: {outcome.reason}")

    output.append("")
    if result.has_candidate:
        output.append(f"Selected replica: {result.candidate.label}")
        behind = [
            (outcome.endpoint.label, result.position.receive_offset - outcome.position.receive_offset)
            for index, outcome in enumerate(result.outcomes)
            if outcome.succeeded and index != result.candidate_index
        ]
        for label, lag in behind:
            output.append(f"  {label} is {format_bytes(lag)} behind")
    else:
        output.append("NO CANDIDATE: no replica reported a replication position")

    output.append(f"{'='*80}\n")

    return "\n".join(output)


def save_selection_to_file(result: SelectionResult, filepath: Path = DEFAULT_SELECTION_LOG) -> None:
    """Append one selection round to a JSON Lines file"""
    filepath.parent.mkdir(parents=True, exist_ok=True)
    record = {'timestamp': datetime.now().isoformat(), **result.to_dict()}

    try:
        with open(filepath, 'a') as f:
            f.write(json.dumps(record) + '\n')
    except OSError as e:
        logger.error(f"Failed to save selection: {e}")
