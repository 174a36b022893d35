"""
Centralized replica endpoint configuration and probe parameters
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / '.env'
if env_path.exists():
    load_dotenv(env_path)


@dataclass(frozen=True)
class ReplicaEndpoint:
    """Connection target for one standby"""
    host: str
    port: int
    database: str
    user: str
    password: str = field(repr=False)
    sslmode: str = "disable"
    name: Optional[str] = None

    @property
    def label(self) -> str:
        """Name used in logs and reports"""
        return self.name or f"{self.host}:{self.port}"

    @property
    def connection_string(self) -> str:
        """Get PostgreSQL connection string"""
        return (
            f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"
            f"?sslmode={self.sslmode}"
        )

    @property
    def safe_connection_string(self) -> str:
        """Connection string with the password masked"""
        return (
            f"postgresql://{self.user}:***@{self.host}:{self.port}/{self.database}"
            f"?sslmode={self.sslmode}"
        )


# Replica topology
REPLICA_HOSTS = os.getenv("REPLICA_HOSTS", "localhost:5433")
REPLICA_PORT = int(os.getenv("REPLICA_PORT", "5432"))
REPLICA_DATABASE = os.getenv("POSTGRES_DB", "postgres")
REPLICA_USER = os.getenv("POSTGRES_USER", "postgres")
REPLICA_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
REPLICA_SSLMODE = os.getenv("PGSSLMODE", "disable")

# Probe limits
PROBE_TIMEOUT_SECONDS = float(os.getenv("PROBE_TIMEOUT_SECONDS", "5"))
EVALUATION_DEADLINE_SECONDS = float(os.getenv("EVALUATION_DEADLINE_SECONDS", "15"))
MAX_PROBE_WORKERS = int(os.getenv("MAX_PROBE_WORKERS", "8"))


def parse_host_list(hosts: str, default_port: int = REPLICA_PORT) -> List[tuple]:
    """
    Split a comma separated host list into (host, port) pairs

    Args:
        hosts: e.g. "10.0.0.4,10.0.0.5:5433,[fe80::1]:5433"
        default_port: Port used for entries without one

    Returns:
        List of (host, port) tuples in the order given
    """
    pairs = []
    for entry in hosts.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if entry.startswith("["):
            # Bracketed IPv6: [addr] or [addr]:port
            host, sep, rest = entry[1:].partition("]")
            port = rest[1:] if rest.startswith(":") else None
            if not sep or not host or (rest and not (port and port.isdigit())):
                raise ValueError(f"Invalid replica host entry: {entry!r}")
            pairs.append((host, int(port) if port else default_port))
            continue
        if entry.count(":") > 1:
            # Bare IPv6 address, no port
            pairs.append((entry, default_port))
            continue
        host, sep, port = entry.rpartition(":")
        if not sep:
            pairs.append((entry, default_port))
            continue
        if not host or not port.isdigit():
            raise ValueError(f"Invalid replica host entry: {entry!r}")
        pairs.append((host, int(port)))
    return pairs


def load_replica_endpoints(hosts: Optional[str] = None) -> List[ReplicaEndpoint]:
    """Build replica endpoints from the environment (or an explicit host list)"""
    return [
        ReplicaEndpoint(
            host=host,
            port=port,
            database=REPLICA_DATABASE,
            user=REPLICA_USER,
            password=REPLICA_PASSWORD,
            sslmode=REPLICA_SSLMODE,
        )
        for host, port in parse_host_list(hosts if hosts is not None else REPLICA_HOSTS)
    ]
