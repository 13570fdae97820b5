"""SQLAlchemy key store.

Counters are advanced with a single ``UPDATE ... RETURNING`` so two workers
never read the same value; claims rely on the primary key constraint, and
an abandoned claim is taken over with a conditional ``UPDATE`` on
``claimed_at`` that only one worker can win. Times are stored as naive UTC.
"""

from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, delete, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from storefront.shared.keys.port import KeyStore

logger = structlog.get_logger(__name__)

metadata = MetaData()

sequences = Table(
    "sequences",
    metadata,
    Column("name", String(100), primary_key=True),
    Column("value", Integer, nullable=False, default=0),
)

claims = Table(
    "claims",
    metadata,
    Column("key", String(255), primary_key=True),
    Column("owner", String(255), nullable=False),
    Column("claimed_at", DateTime, nullable=False),
)


class SQLKeyStore(KeyStore):
    def __init__(self, engine: Engine, clock=None):
        self.engine = engine
        self.clock = clock or (lambda: datetime.now(UTC))
        metadata.create_all(engine)

    def _now(self) -> datetime:
        now = self.clock()
        return now.astimezone(UTC).replace(tzinfo=None) if now.tzinfo else now

    def next_value(self, counter: str) -> int:
        stmt = (
            update(sequences)
            .where(sequences.c.name == counter)
            .values(value=sequences.c.value + 1)
            .returning(sequences.c.value)
        )
        with self.engine.begin() as conn:
            value = conn.execute(stmt).scalar()
            if value is not None:
                return value

        # First allocation for this counter; a concurrent insert loses on the
        # primary key and falls back to the increment.
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(sequences).values(name=counter, value=1))
            return 1
        except IntegrityError:
            logger.debug("Sequence created concurrently", counter=counter)
            with self.engine.begin() as conn:
                return conn.execute(stmt).scalar_one()

    def claim(self, key: str, owner: str, ttl: timedelta | None = None) -> bool:
        now = self._now()
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(claims).values(key=key, owner=owner, claimed_at=now))
            return True
        except IntegrityError:
            if ttl is None:
                return False

        stmt = (
            update(claims)
            .where(claims.c.key == key, claims.c.claimed_at < now - ttl)
            .values(owner=owner, claimed_at=now)
        )
        with self.engine.begin() as conn:
            taken = conn.execute(stmt).rowcount == 1
        if taken:
            logger.warning("Stale claim taken over", key=key, owner=owner)
        return taken

    def owner_of(self, key: str) -> str | None:
        with self.engine.connect() as conn:
            return conn.execute(select(claims.c.owner).where(claims.c.key == key)).scalar()

    def release(self, key: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(claims).where(claims.c.key == key))
