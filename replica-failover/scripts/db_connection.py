"""
Short-lived replica connections with explicit timeouts
"""
import math
import time
import psycopg2
from psycopg2 import errors as pg_errors
from typing import Optional, Any
import logging

from db_config import ReplicaEndpoint
from probe_errors import ProbeConnectionError, ProbeQueryError

logger = logging.getLogger(__name__)

APPLICATION_NAME = "replica-failover-probe"
KEEPALIVES_COUNT = 3


class ReplicaConnection:
    """Owns one connection to one replica for the lifetime of a probe"""

    def __init__(self, endpoint: ReplicaEndpoint, timeout: float):
        """
        Args:
            endpoint: Replica to connect to
            timeout: Seconds allowed for the whole probe: connecting plus every statement
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self.expires_at = time.monotonic() + timeout
        self.conn = None

    def remaining(self) -> float:
        """Seconds left of the probe budget"""
        return self.expires_at - time.monotonic()

    def open(self):
        """Connect, mapping driver failures to ProbeConnectionError"""
        remaining = self.remaining()
        # libpq only accepts whole seconds and treats anything below 2 as 2;
        # the selector enforces the exact bound on the client side
        connect_timeout = max(2, int(math.ceil(remaining)))
        idle = max(1, int(remaining))
        try:
            self.conn = psycopg2.connect(
                host=self.endpoint.host,
                port=self.endpoint.port,
                dbname=self.endpoint.database,
                user=self.endpoint.user,
                password=self.endpoint.password,
                sslmode=self.endpoint.sslmode,
                connect_timeout=connect_timeout,
                application_name=APPLICATION_NAME,
                keepalives=1,
                keepalives_idle=idle,
                keepalives_interval=1,
                keepalives_count=KEEPALIVES_COUNT,
                tcp_user_timeout=max(1, int(remaining * 1000)),
            )
            self.conn.autocommit = True
        except psycopg2.OperationalError as e:
            kind = "timeout" if "timeout expired" in str(e) else None
            raise ProbeConnectionError(
                f"could not connect to {self.endpoint.safe_connection_string}: {str(e).strip()}",
                stage="connect",
                kind=kind,
            ) from e
        except psycopg2.Error as e:
            raise ProbeConnectionError(
                f"could not connect to {self.endpoint.safe_connection_string}: {str(e).strip()}",
                stage="connect",
            ) from e
        logger.debug(f"Connected to {self.endpoint.label}")
        return self

    def fetch_one(self, query: str, stage: str) -> Optional[tuple]:
        """
        Execute a read-only query and return its first row

        The server-side statement_timeout is set to whatever is left of the
        probe budget before the query runs.

        Args:
            query: SQL text, no parameters
            stage: Name of the probe step, carried into errors

        Returns:
            First row as a tuple, or None for an empty result set
        """
        remaining_ms = int(self.remaining() * 1000)
        if remaining_ms <= 0:
            raise ProbeQueryError(
                f"probe budget of {self.timeout}s used up before query on {self.endpoint.label}",
                stage=stage,
                kind="timeout",
            )
        try:
            with self.conn.cursor() as cursor:
                cursor.execute("SET statement_timeout = %s", (remaining_ms,))
                cursor.execute(query)
                return cursor.fetchone()
        except pg_errors.QueryCanceled as e:
            raise ProbeQueryError(
                f"statement timed out after {self.timeout}s on {self.endpoint.label}",
                stage=stage,
                kind="timeout",
            ) from e
        except psycopg2.Error as e:
            raise ProbeQueryError(
                f"{self.endpoint.label}: {str(e).strip()}",
                stage=stage,
            ) from e

    def close(self):
        """Close the connection if it was opened"""
        if self.conn is not None:
            try:
                self.conn.close()
            except psycopg2.Error as e:
                logger.warning(f"Closing connection to {self.endpoint.label} failed: {e}")
            finally:
                self.conn = None

    def __enter__(self) -> "ReplicaConnection":
        return self.open()

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()
