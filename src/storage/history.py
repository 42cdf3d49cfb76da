"""
Crawl history store: durable log of every finished crawl attempt.
Supports both file-based (JSON lines) and Cassandra storage.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, List, Any, Sequence

try:
    from cassandra.cluster import Cluster
    from cassandra.policies import DCAwareRoundRobinPolicy
    CASSANDRA_AVAILABLE = True
except ImportError:
    CASSANDRA_AVAILABLE = False

from ..crawler.crawl_url import CrawlUrl
from ..utils.config import HistoryConfig


class HistoryStoreError(Exception):
    """Raised when crawl history cannot be initialized or written."""
    pass


def history_record(crawl_url: CrawlUrl) -> Dict[str, Any]:
    """Serializable history entry for a finished CrawlUrl."""
    record = crawl_url.to_dict()
    record['recorded_at'] = datetime.now(timezone.utc).isoformat()
    return record


class HistoryBackend:
    """Abstract base class for history backends."""

    async def initialize(self):
        """Initialize the history backend."""
        raise NotImplementedError

    async def add(self, crawl_urls: Sequence[CrawlUrl]):
        """Durably append finished crawl attempts."""
        raise NotImplementedError

    async def get_stats(self) -> Dict[str, Any]:
        """Get history statistics."""
        raise NotImplementedError

    async def close(self):
        """Close history connections."""
        raise NotImplementedError


class FileHistoryBackend(HistoryBackend):
    """Appends one JSON line per crawl attempt to a local file."""

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)
        self._lock = asyncio.Lock()
        self.stats = {
            'total_recorded': 0,
        }

    async def initialize(self):
        """Create the parent directory of the history file."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.touch(exist_ok=True)
            self.logger.info(f"File history initialized at {self.path}")
        except OSError as e:
            raise HistoryStoreError(f"Failed to initialize file history: {e}") from e

    async def add(self, crawl_urls: Sequence[CrawlUrl]):
        """Append entries; concurrent workers are serialized on a lock."""
        lines = [json.dumps(history_record(c), ensure_ascii=False) + '\n' for c in crawl_urls]
        if not lines:
            return

        async with self._lock:
            try:
                with open(self.path, 'a', encoding='utf-8') as f:
                    f.writelines(lines)
            except OSError as e:
                raise HistoryStoreError(f"Error writing history to {self.path}: {e}") from e

        self.stats['total_recorded'] += len(lines)
        self.logger.debug(f"Recorded {len(lines)} crawl attempts to {self.path}")

    def read_all(self) -> List[CrawlUrl]:
        """Load every recorded attempt back from the file."""
        if not self.path.exists():
            return []
        with open(self.path, 'r', encoding='utf-8') as f:
            return [CrawlUrl.from_dict(json.loads(line)) for line in f if line.strip()]

    async def get_stats(self) -> Dict[str, Any]:
        """Get history statistics."""
        stats = self.stats.copy()
        if self.path.exists():
            stats['total_size_bytes'] = self.path.stat().st_size
        return stats

    async def close(self):
        self.logger.info(f"File history closed ({self.stats['total_recorded']} recorded)")


class CassandraHistoryBackend(HistoryBackend):
    """Cassandra history backend for production deployments."""

    def __init__(self, config: Dict[str, Any]):
        if not CASSANDRA_AVAILABLE:
            raise HistoryStoreError("Cassandra driver not available. Install cassandra-driver package.")

        self.config = config
        self.cluster = None
        self.session = None
        self.insert_statement = None
        self.logger = logging.getLogger(__name__)
        self.stats = {
            'total_recorded': 0,
        }

    async def initialize(self):
        """Initialize Cassandra connection, keyspace and table."""
        try:
            hosts = self.config.get('hosts', ['localhost'])
            port = self.config.get('port', 9042)

            self.cluster = Cluster(
                hosts,
                port=port,
                load_balancing_policy=DCAwareRoundRobinPolicy()
            )

            self.session = self.cluster.connect()

            keyspace = self.config.get('keyspace', 'crawler_data')
            replication_factor = self.config.get('replication_factor', 1)

            self.session.execute(f"""
                CREATE KEYSPACE IF NOT EXISTS {keyspace}
                WITH replication = {{
                    'class': 'SimpleStrategy',
                    'replication_factor': {replication_factor}
                }}
            """)

            self.session.set_keyspace(keyspace)

            self.session.execute("""
                CREATE TABLE IF NOT EXISTS crawl_history (
                    crawl_id text,
                    url text,
                    recorded_at timestamp,
                    parent_url text,
                    anchor text,
                    depth int,
                    crawl_start_time double,
                    http_status int,
                    status text,
                    detail text,
                    PRIMARY KEY ((crawl_id), url, recorded_at)
                )
            """)

            self.insert_statement = self.session.prepare("""
                INSERT INTO crawl_history (
                    crawl_id, url, recorded_at, parent_url, anchor, depth,
                    crawl_start_time, http_status, status, detail
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """)

            self.logger.info(f"Cassandra history initialized with keyspace: {keyspace}")

        except Exception as e:
            raise HistoryStoreError(f"Failed to initialize Cassandra: {e}") from e

    async def add(self, crawl_urls: Sequence[CrawlUrl]):
        """Insert one row per crawl attempt."""
        try:
            for crawl_url in crawl_urls:
                result = crawl_url.result
                self.session.execute(self.insert_statement, (
                    crawl_url.crawl_id,
                    crawl_url.url,
                    datetime.now(timezone.utc),
                    crawl_url.parent_url,
                    crawl_url.anchor,
                    crawl_url.depth,
                    crawl_url.crawl_start_time,
                    crawl_url.http_status,
                    result.status.value if result else None,
                    result.detail if result else None
                ))
                self.stats['total_recorded'] += 1
        except Exception as e:
            raise HistoryStoreError(f"Error writing history to Cassandra: {e}") from e

    async def get_stats(self) -> Dict[str, Any]:
        return self.stats.copy()

    async def close(self):
        """Close Cassandra connections."""
        if self.cluster:
            self.cluster.shutdown()
            self.logger.info("Cassandra connections closed")


class CrawlHistory:
    """History store used by the workers; delegates to the configured backend."""

    def __init__(self, config: HistoryConfig):
        self.config = config
        self.backend: Optional[HistoryBackend] = None
        self.logger = logging.getLogger(__name__)

    async def initialize(self):
        """Initialize the appropriate history backend."""
        backend_type = self.config.type.lower()

        if backend_type == 'cassandra':
            self.backend = CassandraHistoryBackend(self.config.cassandra)
        elif backend_type == 'file':
            self.backend = FileHistoryBackend(self.config.file['path'])
        else:
            raise HistoryStoreError(f"Unknown history type: {backend_type}")

        await self.backend.initialize()
        self.logger.info(f"Crawl history initialized with {backend_type} backend")

    async def add(self, crawl_urls: Sequence[CrawlUrl]):
        """Append finished crawl attempts."""
        if not self.backend:
            raise HistoryStoreError("History not initialized")
        await self.backend.add(crawl_urls)

    async def get_stats(self) -> Dict[str, Any]:
        """Get history statistics."""
        if not self.backend:
            raise HistoryStoreError("History not initialized")
        return await self.backend.get_stats()

    async def close(self):
        """Close history connections."""
        if self.backend:
            await self.backend.close()
