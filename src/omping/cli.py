"""Command-line interface for omping."""

import sys
from typing import List, Optional, Sequence

from .addresses import SessionConfig
from .errors import OmpingError, UsageError
from .log import setup_logging
from .options import PROGRAM_NAME, create_parser, parse_args
from .session import build_session


def format_session(session: SessionConfig) -> List[str]:
    """Describe a session configuration, one line per item."""
    local = session.local_addr
    lines = [
        f"IP version: {session.ip_version}",
        f"Local address: {local.host_name} ({local.endpoint.address}) on {local.ifname}",
        f"Multicast group: {session.mcast_addr.host_name} ({session.mcast_addr.resolved})",
        f"Transport method: {session.transport_method.value}",
        f"TTL: {session.ttl}",
    ]

    if session.single_addr:
        lines.append("Single participant, pinging self")

    lines.append(f"Remote addresses ({len(session.remote_addrs)}):")
    for entry in session.remote_addrs:
        lines.append(f"  {entry.host_name} ({entry.resolved})")

    return lines


def fail(message: str, usage: bool = False) -> None:
    """Print a diagnostic to stderr and exit with status 1."""
    print(f"{PROGRAM_NAME}: {message}", file=sys.stderr)
    if usage:
        create_parser().print_usage(sys.stderr)
    sys.exit(1)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point."""
    try:
        options = parse_args(argv)
        setup_logging(options.verbose)
        session = build_session(options)
    except UsageError as e:
        fail(str(e), usage=True)
    except OmpingError as e:
        fail(str(e))

    if not session.quiet:
        for line in format_session(session):
            print(line)


if __name__ == "__main__":
    main()
