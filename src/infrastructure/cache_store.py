import logging
import time
from typing import Callable, List, Optional
from pydantic import ValidationError
from sqlalchemy import create_engine, select
from sqlalchemy.engine import make_url
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlalchemy import Table, Column, String, BigInteger, JSON, MetaData

from src.domain.exceptions import CacheStoreException
from src.domain.models import CacheEntry, ProjectDescriptor

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = 'github_repos_cache_'
CACHE_TTL_MS = 30 * 60 * 1000

# SQLAlchemy core Table definition
metadata = MetaData()
cache_table = Table(
    'github_repos_cache', metadata,
    Column('cache_key', String, primary_key=True),
    Column('timestamp', BigInteger, nullable=False),
    Column('data', JSON().with_variant(JSONB(), 'postgresql'), nullable=False),
)

def cache_key(username: str) -> str:
    return f"{CACHE_KEY_PREFIX}{username}"

def _now_ms() -> int:
    return int(time.time() * 1000)

def _engine_options(db_url: str) -> dict:
    # In-memory SQLite lives in a single connection shared by every thread
    url = make_url(db_url)
    if url.get_backend_name() == 'sqlite' and url.database in (None, '', ':memory:'):
        return {'poolclass': StaticPool, 'connect_args': {'check_same_thread': False}}
    return {}

class ReposCacheRepository:
    """
    Key/value store for the per-username repository list.
    Entries older than the freshness window are reported as absent.
    Reads and writes are synchronous so a cycle can start from cached data immediately;
    callers may run writes from a worker thread.
    """

    def __init__(self, db_url: str, ttl_ms: int = CACHE_TTL_MS, clock: Optional[Callable[[], int]] = None):
        self.engine = create_engine(db_url, echo=False, **_engine_options(db_url))
        self.ttl_ms = ttl_ms
        self._clock = clock or _now_ms
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise CacheStoreException(f"Could not prepare cache table: {e}") from e

    def read(self, username: str) -> Optional[CacheEntry]:
        """
        Returns the fresh cache entry for a username, or None on a miss.

        Raises:
            CacheStoreException: when the underlying database fails.
        """
        stmt = select(cache_table.c.timestamp, cache_table.c.data).where(
            cache_table.c.cache_key == cache_key(username)
        )
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).first()
        except SQLAlchemyError as e:
            raise CacheStoreException(f"Could not read cache for {username}: {e}") from e

        if row is None:
            return None
        if self._clock() - row.timestamp > self.ttl_ms:
            return None

        try:
            return CacheEntry.model_validate({'timestamp': row.timestamp, 'data': row.data})
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry for {username}: {e}")
            return None

    def write(self, username: str, projects: List[ProjectDescriptor]) -> None:
        """
        Stores the list for a username, replacing any previous entry.

        Args:
            username (str): Cache owner.
            projects (List[ProjectDescriptor]): Descriptors to persist.
        """
        values = {
            'cache_key': cache_key(username),
            'timestamp': self._clock(),
            'data': [project.model_dump(by_alias=True) for project in projects],
        }

        dialect = postgresql if self.engine.dialect.name == 'postgresql' else sqlite
        stmt = dialect.insert(cache_table).values(values)
        upsert_stmt = stmt.on_conflict_do_update(
            index_elements=['cache_key'],
            set_={
                'timestamp': stmt.excluded.timestamp,
                'data': stmt.excluded.data,
            },
        )

        try:
            with self.engine.begin() as conn:
                conn.execute(upsert_stmt)
        except SQLAlchemyError as e:
            raise CacheStoreException(f"Could not write cache for {username}: {e}") from e
