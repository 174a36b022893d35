"""
Reads the receive/replay WAL position of a single replica
"""
import logging
from typing import Callable, Optional

from db_config import ReplicaEndpoint
from db_connection import ReplicaConnection
from dialect import (
    POSITION_QUERY_TEMPLATE,
    SERVER_VERSION_QUERY,
    build_position_query,
    resolve_dialect,
)
from probe_errors import ProbeError, ProbeParseError
from utils import MAX_WAL_OFFSET, ProbeOutcome, ReplicationPosition

logger = logging.getLogger(__name__)


def parse_server_version(row: Optional[tuple]) -> int:
    """Turn the server_version_num row into an integer"""
    if not row or row[0] is None:
        raise ProbeParseError("server version query returned no rows", stage="version")
    try:
        return int(row[0])
    except (TypeError, ValueError) as e:
        raise ProbeParseError(f"unexpected server version {row[0]!r}", stage="version") from e


def parse_offset(value, column: str) -> int:
    """Validate one offset column as an unsigned 64-bit integer"""
    if value is None:
        raise ProbeParseError(f"{column} is NULL (replica not streaming?)", stage="position")
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ProbeParseError(f"{column} is not an integer: {value!r}", stage="position")
    try:
        offset = int(value)
    except ValueError as e:
        raise ProbeParseError(f"{column} is not an integer: {value!r}", stage="position") from e
    if not 0 <= offset <= MAX_WAL_OFFSET:
        raise ProbeParseError(f"{column} out of range: {offset}", stage="position")
    return offset


def parse_position(row: Optional[tuple]) -> ReplicationPosition:
    """Turn the position query row into a ReplicationPosition"""
    if not row:
        raise ProbeParseError("position query returned no rows", stage="position")
    if len(row) < 2:
        raise ProbeParseError(f"expected 2 columns, got {len(row)}", stage="position")
    return ReplicationPosition(
        receive_offset=parse_offset(row[0], "receive_offset"),
        replay_offset=parse_offset(row[1], "replay_offset"),
    )


class PositionReader:
    """Probes one replica at a time; keeps no state between calls"""

    def __init__(self,
                 connection_factory: Callable[[ReplicaEndpoint, float], ReplicaConnection] = ReplicaConnection,
                 version_query: str = SERVER_VERSION_QUERY,
                 position_template: str = POSITION_QUERY_TEMPLATE):
        self.connection_factory = connection_factory
        self.version_query = version_query
        self.position_template = position_template

    def read_position(self, endpoint: ReplicaEndpoint, timeout: float) -> ProbeOutcome:
        """
        Query a replica for its replication position

        Args:
            endpoint: Replica to probe
            timeout: Seconds allowed for the connection and for each query

        Returns:
            ProbeOutcome holding either the position or the error that stopped the probe
        """
        try:
            with self.connection_factory(endpoint, timeout) as conn:
                version = parse_server_version(conn.fetch_one(self.version_query, stage="version"))
                dialect = resolve_dialect(version)
                query = build_position_query(dialect, self.position_template)
                position = parse_position(conn.fetch_one(query, stage="position"))
        except ProbeError as e:
            logger.warning(f"Probe of {endpoint.label} failed: {e}")
            return ProbeOutcome.failure(endpoint, e)

        logger.info(
            f"{endpoint.label}: server_version_num={version} "
            f"receive location={position.receive_offset} replay location={position.replay_offset}"
        )
        return ProbeOutcome.success(endpoint, position)
