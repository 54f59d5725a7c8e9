"""
Tests for controller.py - end-to-end reconciliation against a SQLite store.
"""

import pytest

from secretsync.conflict import Action
from secretsync.controller import REPLICA, SOURCE_GONE, SecretController
from secretsync.errors import ConflictError, NotFoundError, ProvenanceError, StoreError
from secretsync.logger import StructuredLogger
from secretsync.origin import OriginProvenance, encode_origin, read_origin
from secretsync.records import (
    ORIGIN_ANNOTATION,
    ORIGIN_CLUSTER_LABEL,
    ORIGIN_NAME_LABEL,
    ORIGIN_NAMESPACE_LABEL,
    SYNC_ANNOTATION,
    Partition,
    Record,
)
from secretsync.storage import SqlStore


@pytest.fixture
def controller(store, quiet_logger):
    return SecretController(store, logger=quiet_logger)


class TestCreateReplica:
    """First sync into a namespace without a replica."""

    def test_creates_replica(self, controller, store, cluster):
        result = controller.reconcile("ns1", "A")

        assert result.action is Action.CREATE
        assert result.destination == "ns2"

        replica = store.get("ns2", "A")
        assert replica.data == cluster.data
        assert read_origin(replica) == OriginProvenance(
            namespace="ns1", name="A", uid=cluster.uid, resource_version=cluster.resource_version
        )
        assert replica.labels[ORIGIN_CLUSTER_LABEL] == "unicorn"
        assert replica.labels[ORIGIN_NAME_LABEL] == "A"
        assert replica.labels[ORIGIN_NAMESPACE_LABEL] == "ns1"

    def test_source_is_untouched(self, controller, store, cluster):
        controller.reconcile("ns1", "A")

        assert store.get("ns1", "A") == cluster

    def test_custom_cluster_label(self, store, cluster, quiet_logger):
        SecretController(store, cluster="west", logger=quiet_logger).reconcile("ns1", "A")

        assert store.get("ns2", "A").labels[ORIGIN_CLUSTER_LABEL] == "west"


class TestIdempotence:
    """Repeated deliveries must not rewrite the destination."""

    def test_second_reconcile_is_noop(self, controller, store, cluster):
        controller.reconcile("ns1", "A")
        first = store.get("ns2", "A")

        result = controller.reconcile("ns1", "A")

        assert result.action is Action.NOOP
        assert result.reason == "stale"
        assert store.get("ns2", "A").resource_version == first.resource_version

    def test_replica_at_current_version_is_left_alone(self, controller, store, cluster):
        origin = OriginProvenance.from_record(cluster)
        existing = store.create(
            Record(
                namespace="ns2",
                name="A",
                data={"something": b"else"},
                annotations={ORIGIN_ANNOTATION: encode_origin(origin)},
            )
        )

        result = controller.reconcile("ns1", "A")

        assert result.action is Action.NOOP
        assert store.get("ns2", "A") == existing


class TestUpdateReplica:
    """Source changes flow to the existing replica."""

    def test_source_change_updates_replica(self, controller, store, cluster):
        controller.reconcile("ns1", "A")
        changed = store.apply_record(
            Record(
                namespace="ns1",
                name="A",
                data={"username": b"root"},
                annotations={SYNC_ANNOTATION: "team=x"},
            )
        )

        result = controller.reconcile("ns1", "A")

        assert result.action is Action.UPDATE
        assert result.reason == "newer"
        replica = store.get("ns2", "A")
        # Full replace, the dropped "password" key is gone
        assert replica.data == {"username": b"root"}
        assert read_origin(replica).resource_version == changed.resource_version

    def test_unmanaged_destination_is_adopted(self, controller, store, cluster):
        store.create(
            Record(
                namespace="ns2",
                name="A",
                data={"legacy": b"1"},
                annotations={"note": "hand made"},
            )
        )

        result = controller.reconcile("ns1", "A")

        assert result.action is Action.UPDATE
        assert result.reason == "adopt"
        replica = store.get("ns2", "A")
        assert replica.data == cluster.data
        assert replica.annotations["note"] == "hand made"
        assert read_origin(replica).name == "A"


class TestNoSync:
    """Benign no-ops never write and never raise."""

    def test_missing_source(self, controller):
        result = controller.reconcile("ns1", "nope")

        assert result.action is Action.NOOP
        assert result.reason == SOURCE_GONE

    def test_no_directive(self, controller, store, cluster):
        store.apply_record(Record(namespace="ns1", name="B", data={"k": b"v"}))

        result = controller.reconcile("ns1", "B")

        assert result.reason == "no-directive"
        assert store.list_records("ns2") == []

    def test_malformed_directive(self, controller, store, cluster):
        store.apply_record(
            Record(namespace="ns1", name="B", annotations={SYNC_ANNOTATION: "teamx"})
        )

        result = controller.reconcile("ns1", "B")

        assert result.action is Action.NOOP
        assert result.reason == "malformed-directive"
        assert store.list_records("ns2") == []

    def test_two_matching_namespaces(self, controller, store, cluster):
        store.apply_partition(Partition(name="ns3", labels={"team": "x"}))

        result = controller.reconcile("ns1", "A")

        assert result.action is Action.NOOP
        assert result.reason == "ambiguous-match"
        assert store.list_records("ns2") == []
        assert store.list_records("ns3") == []

    def test_no_matching_namespace(self, controller, store, cluster):
        store.apply_partition(Partition(name="ns2", labels={"team": "z"}))

        result = controller.reconcile("ns1", "A")

        assert result.reason == "no-match"
        assert store.list_records("ns2") == []

    def test_replica_is_never_a_source(self, controller, store, cluster):
        controller.reconcile("ns1", "A")
        # Even with a directive of its own, a replica is not synced outward
        replica = store.get("ns2", "A")
        replica.annotations[SYNC_ANNOTATION] = "team=y"
        store.update(replica)

        result = controller.reconcile("ns2", "A")

        assert result.action is Action.NOOP
        assert result.reason == REPLICA
        assert store.get("ns1", "A") == cluster

    def test_source_selecting_its_own_namespace(self, controller, store, cluster):
        store.apply_partition(Partition(name="ns1", labels={"team": "self"}))
        source = store.apply_record(
            Record(namespace="ns1", name="A", annotations={SYNC_ANNOTATION: "team=self"})
        )

        result = controller.reconcile("ns1", "A")

        assert result.action is Action.NOOP
        assert result.reason == "circular"
        assert store.get("ns1", "A") == source


class TestFailures:
    """Errors propagate for the caller to retry or report."""

    def test_malformed_provenance_raises(self, controller, store, cluster, quiet_logger):
        store.create(
            Record(namespace="ns2", name="A", annotations={ORIGIN_ANNOTATION: "garbage"})
        )

        with pytest.raises(ProvenanceError):
            controller.reconcile("ns1", "A")

        assert store.get("ns2", "A").annotations[ORIGIN_ANNOTATION] == "garbage"
        assert quiet_logger.get_metrics()["errors_by_type"] == {"ProvenanceError": 1}

    def test_write_conflict_propagates(self, tmp_path, quiet_logger):
        class RacingStore(SqlStore):
            """Another writer touches the replica between read and update."""

            def update(self, record):
                self.apply_record(self.get(record.namespace, record.name))
                return super().update(record)

        store = RacingStore(tmp_path / "race.db")
        try:
            store.apply_partition(Partition(name="ns2", labels={"team": "x"}))
            store.apply_record(
                Record(namespace="ns1", name="A", annotations={SYNC_ANNOTATION: "team=x"})
            )
            store.apply_record(Record(namespace="ns2", name="A"))

            with pytest.raises(ConflictError):
                SecretController(store, logger=quiet_logger).reconcile("ns1", "A")
        finally:
            store.close()

    def test_store_read_failure_propagates(self, quiet_logger):
        class BrokenStore(SqlStore):
            def __init__(self):
                pass

            def get(self, namespace, name):
                raise StoreError("store unavailable")

        with pytest.raises(StoreError):
            SecretController(BrokenStore(), logger=quiet_logger).reconcile("ns1", "A")


class TestMetrics:
    """Outcomes are counted on the logger."""

    def test_outcomes_recorded(self, controller, store, cluster, quiet_logger):
        controller.reconcile("ns1", "A")
        controller.reconcile("ns1", "A")
        controller.reconcile("ns1", "missing")

        metrics = quiet_logger.get_metrics()
        assert metrics["reconciles"] == 3
        assert metrics["created"] == 1
        assert metrics["skipped"] == 2
        assert metrics["skip_reasons"] == {"stale": 1, SOURCE_GONE: 1}
        assert metrics["failed"] == 0


def test_not_found_is_a_store_error():
    assert NotFoundError("ns", "n").retryable


class TestDiagnostics:
    """The controller's own logger receives every diagnostic."""

    @pytest.fixture
    def log_dir(self, tmp_path):
        return tmp_path / "logs"

    @pytest.fixture
    def file_controller(self, store, log_dir):
        logger = StructuredLogger(name="secretsync.reconciler", log_dir=log_dir, enable_console=False)
        return SecretController(store, logger=logger)

    def read_log(self, log_dir):
        return next(log_dir.glob("*.log")).read_text()

    def test_ambiguous_match_warning(self, file_controller, store, cluster, log_dir):
        store.apply_partition(Partition(name="ns3", labels={"team": "x"}))

        result = file_controller.reconcile("ns1", "A")

        assert result.reason == "ambiguous-match"
        content = self.read_log(log_dir)
        assert "Expected exactly one namespace to match label selector" in content
        assert '"matched": ["ns2", "ns3"]' in content

    def test_no_match_warning(self, file_controller, store, cluster, log_dir):
        store.apply_partition(Partition(name="ns2", labels={"team": "z"}))

        result = file_controller.reconcile("ns1", "A")

        assert result.reason == "no-match"
        content = self.read_log(log_dir)
        assert "Expected exactly one namespace to match label selector" in content
        assert '"selector": {"team": "x"}, "matched": []' in content

    def test_write_messages(self, file_controller, store, cluster, log_dir):
        file_controller.reconcile("ns1", "A")
        store.apply_record(
            Record(namespace="ns1", name="A", data={"k": b"v2"}, annotations={SYNC_ANNOTATION: "team=x"})
        )
        file_controller.reconcile("ns1", "A")

        content = self.read_log(log_dir)
        assert "Creating new secret" in content
        assert "Updating existing secret" in content
