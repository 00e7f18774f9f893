"""Cassandra-backed document store using cassandra-asyncio-driver.

Provides:
- Cluster connection lifecycle (``AsyncCassandraConnection``)
- Keyspace and table initialization
- ``CassandraStore``: the document store contract on top of lightweight
  transactions (``IF NOT EXISTS`` / ``IF version = ?``)

Each collection is one partition of the ``documents`` table with the body
stored as JSON. Filters are applied client-side after a partition scan.
"""

from typing import Any

import orjson
import structlog
from cassandra import (
    DriverException,
    OperationTimedOut,
    ReadTimeout,
    RequestExecutionException,
    WriteTimeout,
)
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from inkpress.config.settings import Settings
from inkpress.core.database.store import (
    ContentionError,
    Document,
    DuplicateKeyError,
    Mutator,
    StoreError,
    StoreTimeoutError,
    apply_delta,
    matches,
)


logger = structlog.get_logger(__name__)


STORE_TABLES_CQL = [
    """
    CREATE TABLE IF NOT EXISTS {keyspace}.documents (
        collection TEXT,
        id TEXT,
        body TEXT,
        version INT,
        PRIMARY KEY ((collection), id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS {keyspace}.unique_keys (
        namespace TEXT,
        value TEXT,
        owner_id TEXT,
        PRIMARY KEY ((namespace, value))
    )
    """,
]


class AsyncCassandraConnection:
    """Cluster connection manager with ``aexecute()`` support."""

    _cluster: Cluster | None = None
    _session = None

    @classmethod
    def connect(cls, settings: Settings):
        if cls._session is not None:
            return cls._session

        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            cls._session = cls._cluster.connect()
            logger.info(
                "cassandra_connected",
                hosts=settings.cassandra_hosts,
                port=settings.cassandra_port,
            )
        except Exception as e:
            logger.error("cassandra_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
        logger.info("cassandra_disconnected")


async def init_keyspace(session, settings: Settings) -> None:
    """Create keyspace and store tables if they don't exist."""
    keyspace = settings.cassandra_keyspace
    if settings.is_production:
        replication = "'class': 'NetworkTopologyStrategy', 'datacenter1': 3"
    else:
        replication = "'class': 'SimpleStrategy', 'replication_factor': 1"

    await session.aexecute(
        f"CREATE KEYSPACE IF NOT EXISTS {keyspace} "
        f"WITH replication = {{{replication}}} AND durable_writes = true"
    )
    session.set_keyspace(keyspace)
    for cql_template in STORE_TABLES_CQL:
        await session.aexecute(cql_template.format(keyspace=keyspace))
    logger.info("cassandra_schema_ready", keyspace=keyspace)


def _dump(document: Document) -> str:
    return orjson.dumps(document).decode()


def _load(body: str) -> Document:
    return orjson.loads(body)


class CassandraStore:
    """Document store on Cassandra lightweight transactions."""

    def __init__(self, session, keyspace: str, cas_attempts: int = 16):
        self.session = session
        self.keyspace = keyspace
        self.cas_attempts = cas_attempts
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        ks = self.keyspace
        self._select_one = self.session.prepare(
            f"SELECT body, version FROM {ks}.documents WHERE collection = ? AND id = ?"
        )
        self._select_all = self.session.prepare(
            f"SELECT body FROM {ks}.documents WHERE collection = ?"
        )
        self._insert = self.session.prepare(f"""
            INSERT INTO {ks}.documents (collection, id, body, version)
            VALUES (?, ?, ?, 1) IF NOT EXISTS
        """)
        self._update_if_version = self.session.prepare(f"""
            UPDATE {ks}.documents SET body = ?, version = ?
            WHERE collection = ? AND id = ? IF version = ?
        """)
        self._delete_if_version = self.session.prepare(
            f"DELETE FROM {ks}.documents WHERE collection = ? AND id = ? IF version = ?"
        )
        self._reserve = self.session.prepare(f"""
            INSERT INTO {ks}.unique_keys (namespace, value, owner_id)
            VALUES (?, ?, ?) IF NOT EXISTS
        """)
        self._lookup = self.session.prepare(
            f"SELECT owner_id FROM {ks}.unique_keys WHERE namespace = ? AND value = ?"
        )
        self._release = self.session.prepare(f"""
            DELETE FROM {ks}.unique_keys WHERE namespace = ? AND value = ?
            IF owner_id = ?
        """)

    async def _execute(self, statement, params: list[Any]):
        try:
            return await self.session.aexecute(statement, params)
        except (OperationTimedOut, WriteTimeout, ReadTimeout) as e:
            raise StoreTimeoutError(str(e)) from e
        except (DriverException, RequestExecutionException) as e:
            raise StoreError(str(e)) from e

    async def _read_versioned(self, collection: str, key: str) -> tuple[Document, int] | None:
        row = (await self._execute(self._select_one, [collection, key])).one()
        if row is None:
            return None
        return _load(row.body), row.version

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def find_by_key(self, collection: str, key: str) -> Document | None:
        found = await self._read_versioned(collection, key)
        return found[0] if found else None

    async def find_many(
        self, collection: str, where: dict[str, Any] | None = None
    ) -> list[Document]:
        rows = await self._execute(self._select_all, [collection])
        documents = (_load(row.body) for row in rows)
        return [document for document in documents if matches(document, where)]

    async def count(self, collection: str, where: dict[str, Any] | None = None) -> int:
        return len(await self.find_many(collection, where))

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def insert(self, collection: str, document: Document) -> Document:
        result = await self._execute(
            self._insert, [collection, document["id"], _dump(document)]
        )
        if not result.was_applied:
            raise DuplicateKeyError(f"{collection}/{document['id']} already exists")
        return document

    async def insert_unique(self, namespace: str, value: str, owner_id: str) -> bool:
        result = await self._execute(self._reserve, [namespace, value, owner_id])
        if result.was_applied:
            return True
        return await self.lookup_unique(namespace, value) == owner_id

    async def lookup_unique(self, namespace: str, value: str) -> str | None:
        row = (await self._execute(self._lookup, [namespace, value])).one()
        return row.owner_id if row else None

    async def release_unique(self, namespace: str, value: str, owner_id: str) -> bool:
        result = await self._execute(self._release, [namespace, value, owner_id])
        return bool(result.was_applied)

    async def transactional_update(
        self, collection: str, key: str, mutate: Mutator
    ) -> Document | None:
        for _ in range(self.cas_attempts):
            found = await self._read_versioned(collection, key)
            if found is None:
                return None
            current, version = found
            updated = mutate(current)
            updated["id"] = key
            result = await self._execute(
                self._update_if_version,
                [_dump(updated), version + 1, collection, key, version],
            )
            if result.was_applied:
                return updated
        logger.warning("cas_attempts_exhausted", collection=collection, key=key)
        raise ContentionError(f"{collection}/{key} kept changing")

    async def atomic_delta(
        self,
        collection: str,
        key: str,
        field: str,
        delta: int,
        floor: int | None = 0,
    ) -> int | None:
        def bump(document: Document) -> Document:
            document[field] = apply_delta(document.get(field), delta, floor)
            return document

        updated = await self.transactional_update(collection, key, bump)
        return updated[field] if updated is not None else None

    async def delete(self, collection: str, key: str) -> Document | None:
        for _ in range(self.cas_attempts):
            found = await self._read_versioned(collection, key)
            if found is None:
                return None
            document, version = found
            result = await self._execute(
                self._delete_if_version, [collection, key, version]
            )
            if result.was_applied:
                return document
        raise ContentionError(f"{collection}/{key} kept changing")

    async def close(self) -> None:
        AsyncCassandraConnection.disconnect()
