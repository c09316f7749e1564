#!/usr/bin/env python3
"""
Teamspace service - per-user Kubernetes namespaces behind GitHub OAuth.

Runs the HTTP API, or talks to the cluster directly for administrative listing and
for watching deletions until they finish.
"""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)

#
# NOTE: Keep teamspace imports lazy (inside functions) so `--help` does not need
# the kubernetes client configured.
#


def _build_manager(config_file: Optional[str]):
    from teamspace.api.app import build_context
    from teamspace.auth.config import load_service_config

    return build_context(load_service_config(config_file)).manager


def list_teamspaces(config_file: Optional[str], owner: Optional[str] = None) -> None:
    """Print teamspaces as JSON: all of them, or only those of `owner`."""
    from teamspace.core.reconcile import project

    manager = _build_manager(config_file)
    items = manager.list_by_owner(owner) if owner else manager.list()
    print(json.dumps([s.to_api() for s in project(items)], indent=2))


def watch_deletions(
    config_file: Optional[str],
    owner: Optional[str] = None,
    *,
    interval: float = 3.0,
    max_polls: Optional[int] = None,
) -> bool:
    """
    Poll the listing while any teamspace is terminating.

    Returns True once nothing is terminating, False if `max_polls` ran out first.
    """
    from teamspace.core.reconcile import TeamspaceStatus, poll_until_settled

    manager = _build_manager(config_file)

    def _fetch():
        return manager.list_by_owner(owner) if owner else manager.list()

    def _report(statuses: List[TeamspaceStatus]) -> None:
        deleting = [s.teamspace.name for s in statuses if s.is_deleting]
        if deleting:
            print(f"Still deleting: {', '.join(sorted(deleting))}", file=sys.stderr)

    _, settled = poll_until_settled(_fetch, interval=interval, max_polls=max_polls, on_poll=_report)
    if settled:
        print("No teamspaces are terminating", file=sys.stderr)
    return settled


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Provision per-user teamspace namespaces",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the API server
  python main.py --serve --port 8080

  # List every teamspace in the cluster
  python main.py --list

  # Wait until alice's pending deletions have finished
  python main.py --watch --owner alice --max-polls 100
        """,
    )
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API server")
    parser.add_argument("--list", action="store_true", help="List teamspaces as JSON (all owners unless --owner)")
    parser.add_argument(
        "--watch", action="store_true", help="Poll until no teamspace is terminating (all owners unless --owner)"
    )
    parser.add_argument("--owner", help="Restrict --list/--watch to one owner")
    parser.add_argument("--config", help="Path to a JSON configuration file (default: $TEAMSPACE_CONFIG_FILE)")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Server listen port (default: from config, else 8080)")
    parser.add_argument("--interval", type=float, default=3.0, help="Seconds between polls for --watch (default: 3)")
    parser.add_argument("--max-polls", type=int, help="Give up --watch after this many listings")

    args = parser.parse_args()

    try:
        if args.serve:
            from teamspace.api.app import run

            run(host=args.host, port=args.port, config_file=args.config)
            return

        if args.list:
            list_teamspaces(args.config, owner=args.owner)
            return

        if args.watch:
            if not watch_deletions(args.config, owner=args.owner, interval=args.interval, max_polls=args.max_polls):
                sys.exit(1)
            return

        parser.print_help()

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
