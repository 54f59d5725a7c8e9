import argparse
from pathlib import Path
from typing import List, Optional

from . import __version__
from .controller import SecretController
from .env import load_env, load_settings
from .errors import ConflictError, SyncError
from .logger import get_logger, reset_logger
from .manifests import load_manifests, manifest_to_object, validate_manifest
from .origin import read_origin
from .records import SYNC_ANNOTATION, Partition
from .retry import RetryError, exponential_backoff
from .storage import SqlStore

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _open_store(args: argparse.Namespace) -> SqlStore:
    return SqlStore(Path(args.db))


def _controller(args: argparse.Namespace, store: SqlStore) -> SecretController:
    return SecretController(store, cluster=args.cluster, logger=get_logger())


def cmd_init(args: argparse.Namespace) -> None:
    store = _open_store(args)
    store.close()
    print(f"Initialized store at {args.db}")


def cmd_apply(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")

    manifests = load_manifests(input_path)
    invalid = False
    for i, manifest in enumerate(manifests):
        errors = validate_manifest(manifest)
        if errors:
            invalid = True
            print(f"Invalid manifest #{i}:")
            for e in errors:
                print(f" - {e}")
    if invalid:
        raise SystemExit(2)

    objects = [manifest_to_object(m) for m in manifests]
    # Namespaces first so secrets in the same file can select them
    objects.sort(key=lambda o: 0 if isinstance(o, Partition) else 1)

    store = _open_store(args)
    try:
        for obj in objects:
            if isinstance(obj, Partition):
                store.apply_partition(obj)
                print(f"namespace/{obj.name} configured")
            else:
                stored = store.apply_record(obj)
                print(f"secret/{stored.key} configured (resourceVersion {stored.resource_version})")
    finally:
        store.close()


def cmd_reconcile(args: argparse.Namespace) -> None:
    store = _open_store(args)
    try:
        controller = _controller(args, store)
        try:
            result = controller.reconcile(args.namespace, args.name)
        except SyncError as e:
            raise SystemExit(f"Reconcile failed: {e}")
    finally:
        store.close()

    print(f"Secret: {result.source}")
    print(f"Status: {result.action.value} ({result.reason})")
    if result.destination:
        print(f"Destination: {result.destination}")


def cmd_resync(args: argparse.Namespace) -> None:
    logger = get_logger()
    store = _open_store(args)
    try:
        controller = _controller(args, store)

        def on_retry(attempt, error, delay):
            logger.warning("Retrying reconcile after conflict", attempt=attempt, delay=delay, error=str(error))

        reconcile = exponential_backoff(
            max_retries=args.retries,
            base_delay=args.backoff,
            exceptions=(ConflictError,),
            on_retry=on_retry,
        )(controller.reconcile)

        try:
            records = store.list_records()
        except SyncError as e:
            raise SystemExit(f"Resync failed: {e}")
        sources = [
            r for r in records
            if not r.is_replica and SYNC_ANNOTATION in r.annotations
        ]
        if not sources:
            print("No secrets carry a sync directive.")
            return

        created = updated = same = failed = 0
        for record in sources:
            try:
                result = reconcile(record.namespace, record.name)
            except (RetryError, SyncError) as e:
                print(f"[error] {record.key} -> {e}")
                failed += 1
                continue
            status = result.action.value
            if status == "create":
                created += 1
            elif status == "update":
                updated += 1
            else:
                same += 1
            print(f"[{status}] {record.key} ({result.reason})")
        print(f"Done. total={len(sources)} created={created} updated={updated} no-change={same} errors={failed}")
        logger.log_metrics_summary()
    finally:
        store.close()


def cmd_list(args: argparse.Namespace) -> None:
    db_path = Path(args.db)
    if not db_path.exists():
        print(f"Store not found: {db_path}")
        return
    store = _open_store(args)
    try:
        records = store.list_records(namespace=args.namespace)
    finally:
        store.close()
    if not records:
        print("No secrets in store.")
        return
    print(f"Found {len(records)} secrets in {db_path}:\n")
    for record in records:
        print(f"Secret: {record.key}")
        print(f"  Type: {record.type}")
        print(f"  Keys: {', '.join(sorted(record.data)) or '-'}")
        print(f"  ResourceVersion: {record.resource_version}")
        if SYNC_ANNOTATION in record.annotations:
            print(f"  Sync: {record.annotations[SYNC_ANNOTATION]}")
        if record.is_replica:
            try:
                origin = read_origin(record)
                print(f"  Origin: {origin.namespace}/{origin.name}@{origin.resource_version}")
            except SyncError as e:
                print(f"  Origin: <invalid: {e}>")
        print()


def main(argv: Optional[List[str]] = None):
    # Load .env if present (SECRETSYNC_DB, SECRETSYNC_CLUSTER, etc.)
    load_env()
    settings = load_settings()

    parser = argparse.ArgumentParser(prog="secretsync", description="Replicate secrets into label-selected namespaces")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", default=str(settings.db_path), help=f"Path to SQLite store (default: {settings.db_path})")
    parser.add_argument("--cluster", default=settings.cluster, help=f"Cluster identifier stamped on replicas (default: {settings.cluster})")
    parser.add_argument("--log-level", default=settings.log_level, type=str.upper, choices=LOG_LEVELS, help="Log level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command")
    ini = subparsers.add_parser("init", help="Create the store and its tables")
    ini.set_defaults(func=cmd_init)

    apl = subparsers.add_parser("apply", help="Create or replace namespaces and secrets from a JSON manifest file")
    apl.add_argument("--input", required=True, help="Path to manifest JSON (object, list, or List kind)")
    apl.set_defaults(func=cmd_apply)

    rec = subparsers.add_parser("reconcile", help="Reconcile one secret")
    rec.add_argument("--namespace", required=True, help="Namespace of the changed secret")
    rec.add_argument("--name", required=True, help="Name of the changed secret")
    rec.set_defaults(func=cmd_reconcile)

    rsy = subparsers.add_parser("resync", help="Reconcile every secret carrying a sync directive")
    rsy.add_argument("--retries", type=int, default=3, help="Retries per secret on write conflicts (default 3)")
    rsy.add_argument("--backoff", type=float, default=0.5, help="Initial retry delay in seconds (default 0.5)")
    rsy.set_defaults(func=cmd_resync)

    lst = subparsers.add_parser("list", help="List stored secrets and their origin")
    lst.add_argument("--namespace", help="Only list secrets in this namespace")
    lst.set_defaults(func=cmd_list)

    args = parser.parse_args(argv)
    # Defaults from SECRETSYNC_LOG_LEVEL bypass argparse choices
    if args.log_level.upper() not in LOG_LEVELS:
        parser.error(f"invalid log level: {args.log_level!r} (choose from {', '.join(LOG_LEVELS)})")

    if args.version:
        print(__version__)
        return

    reset_logger()
    get_logger(level=args.log_level, log_dir=settings.log_dir)

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
