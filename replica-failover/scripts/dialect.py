"""
WAL position function names for each PostgreSQL generation

PostgreSQL 10 renamed the xlog functions to wal/lsn. The server version
number (server_version_num) decides which set a replica understands.
"""
from typing import NamedTuple

# server_version_num of the first release with the renamed functions
MODERN_WAL_VERSION_NUM = 100000

SERVER_VERSION_QUERY = "SELECT current_setting('server_version_num')"

POSITION_QUERY_TEMPLATE = (
    "SELECT {diff}({receive}(), '0/0')::bigint AS receive_offset, "
    "{diff}({replay}(), '0/0')::bigint AS replay_offset"
)


class WalDialect(NamedTuple):
    """Functions used to read receive/replay positions and their distance from 0/0"""
    receive_function: str
    replay_function: str
    diff_function: str


LEGACY_DIALECT = WalDialect(
    receive_function="pg_last_xlog_receive_location",
    replay_function="pg_last_xlog_replay_location",
    diff_function="pg_xlog_location_diff",
)

MODERN_DIALECT = WalDialect(
    receive_function="pg_last_wal_receive_lsn",
    replay_function="pg_last_wal_replay_lsn",
    diff_function="pg_wal_lsn_diff",
)


def resolve_dialect(server_version: int) -> WalDialect:
    """Pick the function triad for a server_version_num value"""
    if server_version < MODERN_WAL_VERSION_NUM:
        return LEGACY_DIALECT
    return MODERN_DIALECT


def build_position_query(dialect: WalDialect, template: str = POSITION_QUERY_TEMPLATE) -> str:
    """Render the receive/replay offset query for a dialect"""
    return template.format(
        diff=dialect.diff_function,
        receive=dialect.receive_function,
        replay=dialect.replay_function,
    )
