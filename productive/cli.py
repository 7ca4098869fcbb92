#!/usr/bin/env python3
"""Productive Cloud CLI entrypoint."""

import argparse
import getpass
import json
import logging
import sys
import threading
from pathlib import Path

from productive.backup import exchange
from productive.lib.config import ClientConfig, load_client_config, load_server_config
from productive.lib.constants import DATA_TYPES
from productive.lib.validate import ValidationError
from productive.store.local import LocalStore
from productive.sync.client import SyncClient
from productive.sync.errors import SyncError
from productive.sync.scheduler import AutosaveScheduler, ConnectivityMonitor
from productive.sync.transport import Transport

logger = logging.getLogger("productive")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_client(config: ClientConfig) -> SyncClient:
    """Wire a Local Store, transport and sync client from config."""
    local = LocalStore(config.data_dir)
    transport = None
    if config.has_backend:
        transport = Transport(config.api_base_url, local, timeout=config.sync_timeout)
    return SyncClient(local, transport)


def _client_config(args) -> ClientConfig:
    config = load_client_config(Path(args.config) if args.config else None)
    if args.data_dir:
        config.data_dir = Path(args.data_dir).expanduser()
    return config


def cmd_serve(args) -> int:
    import uvicorn

    from productive.server.app import create_app

    config = load_server_config(Path(args.config) if args.config else None)
    setup_logging(config.log_level)
    host = args.host or config.host
    port = args.port or config.port
    app = create_app(config)
    uvicorn.run(app, host=host, port=port, log_level=config.log_level.lower())
    return 0


def cmd_login(args) -> int:
    config = _client_config(args)
    setup_logging(config.log_level)
    client = build_client(config)
    if client.transport is None:
        print("ERROR: No backend configured (ENVIRONMENT=static or API_BASE_URL unset)")
        return 2
    password = args.password or getpass.getpass("Password: ")
    try:
        user = client.transport.login(args.email, password)
    except SyncError as e:
        print(f"ERROR: Login failed: {e}")
        return 1
    print(f"Logged in as {user.get('username', args.email)}")
    return 0


def cmd_logout(args) -> int:
    config = _client_config(args)
    LocalStore(config.data_dir).clear_token()
    print("Logged out")
    return 0


def cmd_sync(args) -> int:
    config = _client_config(args)
    setup_logging(config.log_level)
    client = build_client(config)

    if args.watch:
        return _watch(client, config)

    if client.transport is None:
        print("Local storage mode: nothing to sync")
        return 0
    if not client.is_authenticated():
        print("Not logged in: run 'productive login' first")
        return 1

    if args.type:
        results = {args.type: client.manual_sync(args.type)}
    else:
        results = client.manual_sync_all()
    for data_type, action in results.items():
        print(f"  {data_type:<10} {action or 'skipped'}")

    if client.pending:
        print(f"Pending retry: {', '.join(client.pending)}")
        return 1
    return 0


def _watch(client: SyncClient, config: ClientConfig) -> int:
    scheduler = AutosaveScheduler(client, config.sync_interval)
    if not scheduler.start():
        print("Local storage mode: nothing to sync")
        return 0
    monitor = ConnectivityMonitor(client, client.transport, config.check_interval)
    monitor.start()
    print(f"Autosave running every {config.sync_interval}s (Ctrl-C to stop)")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        monitor.stop()
        scheduler.stop()
        client.flush()
    return 0


def cmd_status(args) -> int:
    config = _client_config(args)
    setup_logging(config.log_level)
    client = build_client(config)
    status = client.status().to_dict()
    status["environment"] = config.environment
    status["apiBaseUrl"] = config.api_base_url
    status["authenticated"] = client.is_authenticated()
    print(json.dumps(status, indent=2))
    return 0


def cmd_export(args) -> int:
    config = _client_config(args)
    setup_logging(config.log_level)
    path = exchange.write_export(LocalStore(config.data_dir), Path(args.path))
    print(f"Exported to {path}")
    return 0


def cmd_import(args) -> int:
    config = _client_config(args)
    setup_logging(config.log_level)
    try:
        written = exchange.read_import(LocalStore(config.data_dir), Path(args.path))
    except ValidationError as e:
        print(f"ERROR: {e}")
        return 1
    print(f"Imported: {', '.join(written)}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog="productive", description="Productive Cloud sync tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def client_parser(name, help_text):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("--config", help="Path to client.env")
        p.add_argument("--data-dir", help="Local Store directory (overrides DATA_DIR)")
        return p

    # productive serve
    p_serve = subparsers.add_parser("serve", help="Run the REST backend")
    p_serve.add_argument("--config", help="Path to server.env")
    p_serve.add_argument("--host", help="Bind host (overrides HOST)")
    p_serve.add_argument("--port", type=int, help="Bind port (overrides PORT)")
    p_serve.set_defaults(func=cmd_serve)

    # productive login / logout
    p_login = client_parser("login", "Log in and store the bearer token")
    p_login.add_argument("email")
    p_login.add_argument("--password", help="Password (prompted if omitted)")
    p_login.set_defaults(func=cmd_login)

    p_logout = client_parser("logout", "Forget the stored bearer token")
    p_logout.set_defaults(func=cmd_logout)

    # productive sync
    p_sync = client_parser("sync", "Sync local data with the backend")
    p_sync.add_argument("--type", choices=DATA_TYPES, help="Only sync this data type")
    p_sync.add_argument("--watch", action="store_true", help="Keep running autosave in the foreground")
    p_sync.set_defaults(func=cmd_sync)

    # productive status
    p_status = client_parser("status", "Show sync status")
    p_status.set_defaults(func=cmd_status)

    # productive export / import
    p_export = client_parser("export", "Export every local dataset to a JSON file")
    p_export.add_argument("path")
    p_export.set_defaults(func=cmd_export)

    p_import = client_parser("import", "Import a JSON backup into the Local Store")
    p_import.add_argument("path")
    p_import.set_defaults(func=cmd_import)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
