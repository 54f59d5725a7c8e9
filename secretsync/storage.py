"""
Secrets Store.

Responsibilities:
- Read, create and update secrets in a namespace.
- List namespaces by label selector.
- Optimistic, version-checked updates.

Non-Responsibilities:
- No sync decisions.
- No provenance handling.

Invariant:
Every write bumps the cluster-wide resourceVersion counter, so versions
are strictly increasing across all records.
"""

import base64
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .database import (
    CounterRow,
    NamespaceRow,
    RESOURCE_VERSION_COUNTER,
    SecretRow,
    get_engine,
    init_database,
)
from .errors import AlreadyExistsError, ConflictError, NotFoundError, StoreError
from .records import Partition, Record


class Store(ABC):
    """Operations the reconciliation core needs from the cluster."""

    @abstractmethod
    def get(self, namespace: str, name: str) -> Record:
        """Return the record or raise NotFoundError."""

    @abstractmethod
    def create(self, record: Record) -> Record:
        """Create the record; AlreadyExistsError if it exists."""

    @abstractmethod
    def update(self, record: Record) -> Record:
        """Replace the record if its resource_version is still current."""

    @abstractmethod
    def list_partitions(self, selector: Dict[str, str]) -> List[Partition]:
        """Return namespaces whose labels contain every selector pair."""


def _encode_data(data: Dict[str, bytes]) -> Dict[str, str]:
    return {k: base64.b64encode(v).decode("ascii") for k, v in data.items()}


def _decode_data(data: Dict[str, str]) -> Dict[str, bytes]:
    return {k: base64.b64decode(v) for k, v in (data or {}).items()}


def _to_record(row: SecretRow) -> Record:
    return Record(
        namespace=row.namespace,
        name=row.name,
        data=_decode_data(row.data),
        annotations=dict(row.annotations or {}),
        labels=dict(row.labels or {}),
        type=row.type,
        uid=row.uid,
        resource_version=str(row.resource_version),
    )


def _to_partition(row: NamespaceRow) -> Partition:
    return Partition(name=row.name, labels=dict(row.labels or {}))


class SqlStore(Store):
    """Store backed by a SQLite database."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        init_database(self.db_path)
        self._engine = get_engine(self.db_path)
        self._Session = sessionmaker(bind=self._engine)

    def close(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _transaction(self):
        try:
            with self._Session.begin() as session:
                yield session
        except SQLAlchemyError as e:
            raise StoreError(f"Store operation failed: {e}") from e

    def _next_version(self, session) -> int:
        counter = session.get(CounterRow, RESOURCE_VERSION_COUNTER)
        if counter is None:
            counter = CounterRow(name=RESOURCE_VERSION_COUNTER, value=0)
            session.add(counter)
        counter.value += 1
        session.flush()
        return counter.value

    # Store contract

    def get(self, namespace: str, name: str) -> Record:
        with self._transaction() as session:
            row = session.get(SecretRow, (namespace, name))
            if row is None:
                raise NotFoundError(namespace, name)
            return _to_record(row)

    def create(self, record: Record) -> Record:
        with self._transaction() as session:
            if session.get(SecretRow, (record.namespace, record.name)) is not None:
                raise AlreadyExistsError(record.namespace, record.name)
            row = SecretRow(
                namespace=record.namespace,
                name=record.name,
                uid=record.uid or str(uuid.uuid4()),
                resource_version=self._next_version(session),
                type=record.type,
                data=_encode_data(record.data),
                annotations=dict(record.annotations),
                labels=dict(record.labels),
            )
            session.add(row)
            session.flush()
            return _to_record(row)

    def update(self, record: Record) -> Record:
        try:
            expected = int(record.resource_version)
        except ValueError:
            raise ConflictError(
                f"{record.key} has no usable resourceVersion: {record.resource_version!r}"
            )

        with self._transaction() as session:
            version = self._next_version(session)
            matched = (
                session.query(SecretRow)
                .filter_by(namespace=record.namespace, name=record.name, resource_version=expected)
                .update(
                    {
                        "resource_version": version,
                        "type": record.type,
                        "data": _encode_data(record.data),
                        "annotations": dict(record.annotations),
                        "labels": dict(record.labels),
                    },
                    synchronize_session=False,
                )
            )
            if matched == 0:
                if session.get(SecretRow, (record.namespace, record.name)) is None:
                    raise NotFoundError(record.namespace, record.name)
                raise ConflictError(
                    f"{record.key} was modified since resourceVersion {expected}"
                )
            row = session.get(SecretRow, (record.namespace, record.name), populate_existing=True)
            return _to_record(row)

    def list_partitions(self, selector: Dict[str, str]) -> List[Partition]:
        with self._transaction() as session:
            rows = session.query(NamespaceRow).order_by(NamespaceRow.name).all()
            partitions = [_to_partition(row) for row in rows]
        return [p for p in partitions if p.matches(selector)]

    # Helpers used by the CLI

    def apply_partition(self, partition: Partition) -> Partition:
        """Create the namespace or replace its labels."""
        with self._transaction() as session:
            row = session.get(NamespaceRow, partition.name)
            if row is None:
                row = NamespaceRow(name=partition.name, labels=dict(partition.labels))
                session.add(row)
            else:
                row.labels = dict(partition.labels)
            session.flush()
            return _to_partition(row)

    def apply_record(self, record: Record) -> Record:
        """Create the secret or replace its contents, ignoring its resourceVersion."""
        with self._transaction() as session:
            row = session.get(SecretRow, (record.namespace, record.name))
            version = self._next_version(session)
            if row is None:
                row = SecretRow(
                    namespace=record.namespace,
                    name=record.name,
                    uid=record.uid or str(uuid.uuid4()),
                )
                session.add(row)
            row.resource_version = version
            row.type = record.type
            row.data = _encode_data(record.data)
            row.annotations = dict(record.annotations)
            row.labels = dict(record.labels)
            session.flush()
            return _to_record(row)

    def list_records(self, namespace: Optional[str] = None) -> List[Record]:
        with self._transaction() as session:
            query = session.query(SecretRow)
            if namespace is not None:
                query = query.filter_by(namespace=namespace)
            rows = query.order_by(SecretRow.namespace, SecretRow.name).all()
            return [_to_record(row) for row in rows]
