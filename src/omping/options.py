"""Command-line option parsing and validation."""

import argparse
import math
import socket
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from . import __version__
from .addresses import IPVersion, TransportMethod
from .errors import UsageError

PROGRAM_NAME = "omping"

DEFAULT_PORT = "4321"
DEFAULT_TTL = 64
DEFAULT_WAIT_TIME = 1000  # ms between pings
DEFAULT_WFF_TIME_MUL = 3  # wait-for-finish as a multiple of the interval
DUP_BUF_SECS = 2 * 60  # seconds of history kept for duplicate detection
MIN_DUP_BUF_ITEMS = 1024
MIN_RCVBUF_SIZE = 2048
MIN_SNDBUF_SIZE = 2048
INT32_MAX = 2 ** 31 - 1
MAX_TTL = 255

# Options followed by a value
VALUE_OPTIONS = frozenset(f"-{c}" for c in "iMmpRrSTtw")

USAGE = (
    "%(prog)s [-46CDFqVv] [-i interval] [-M transport_method] [-m mcast_addr]\n"
    "              [-p port] [-R rcvbuf] [-r rate_limit] [-S sndbuf] [-T timeout]\n"
    "              [-t ttl] [-w wait_time] remote_addr..."
)


@dataclass
class Options:
    """Validated command-line options. Times are in milliseconds."""
    hosts: List[str] = field(default_factory=list)
    ip_version: IPVersion = IPVersion.UNCONSTRAINED
    mcast_addr: Optional[str] = None
    port: str = DEFAULT_PORT
    ttl: int = DEFAULT_TTL
    wait_time: int = DEFAULT_WAIT_TIME
    transport_method: TransportMethod = TransportMethod.ASM
    quiet: int = 0
    verbose: int = 0
    cont_stat: int = 0
    force: int = 0
    timeout_time: int = 0
    wait_for_finish_time: int = DEFAULT_WAIT_TIME * DEFAULT_WFF_TIME_MUL
    dup_buf_items: int = MIN_DUP_BUF_ITEMS
    rate_limit_time: int = DEFAULT_WAIT_TIME
    sndbuf_size: int = 0
    rcvbuf_size: int = 0


class OptionParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting."""

    def error(self, message: str) -> None:
        raise UsageError(message)


def ssm_supported() -> bool:
    """True if the platform can join source-specific multicast groups."""
    return hasattr(socket, "IP_ADD_SOURCE_MEMBERSHIP")


def _illegal(option: str, value: str) -> UsageError:
    return UsageError(f"illegal number, -{option} argument -- {value}")


def _parse_float(option: str, value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise _illegal(option, value) from None
    if math.isnan(number):
        raise _illegal(option, value)
    return number


def parse_seconds(option: str, value: str, allow_forever: bool = False) -> int:
    """
    Parse a non-negative number of seconds into milliseconds.

    Args:
        option: Option letter, for the error message
        value: Raw option value
        allow_forever: Also accept -1

    Raises:
        UsageError: If the value is out of range
    """
    number = _parse_float(option, value)
    if number < 0 and not (allow_forever and number == -1):
        raise _illegal(option, value)
    if number * 1000 > INT32_MAX:
        raise _illegal(option, value)
    return int(number * 1000.0)


def parse_buffer_size(option: str, value: str, minimum: int) -> int:
    number = _parse_float(option, value)
    if number < minimum or number > INT32_MAX:
        raise _illegal(option, value)
    return int(number)


def parse_ttl(value: str) -> int:
    try:
        number = int(value, 10)
    except ValueError:
        raise _illegal("t", value) from None
    if number <= 0 or number > MAX_TTL:
        raise _illegal("t", value)
    return number


def parse_transport_method(value: str) -> TransportMethod:
    if value == "asm":
        return TransportMethod.ASM
    if value == "ssm" and ssm_supported():
        return TransportMethod.SSM
    raise UsageError(f"illegal parameter, -M argument -- {value}")


def join_option_values(argv: Sequence[str]) -> List[str]:
    """
    Attach dash-prefixed values to the option that takes them.

    argparse reads "-1" as an option because -4 and -6 exist, so "-w -1"
    becomes "-w-1". Any option that takes a value always consumes the next
    argument, as getopt does.
    """
    joined: List[str] = []
    args = iter(argv)
    for arg in args:
        if arg == "--":
            joined.append(arg)
            joined.extend(args)
            break
        if arg in VALUE_OPTIONS:
            value = next(args, None)
            if value is None:
                joined.append(arg)
            elif value.startswith("-"):
                joined.append(arg + value)
            else:
                joined.extend((arg, value))
            continue
        joined.append(arg)
    return joined


def create_parser() -> OptionParser:
    parser = OptionParser(
        prog=PROGRAM_NAME,
        usage=USAGE,
        add_help=False,
        description="Multicast ping: check multicast reachability between hosts",
    )
    parser.add_argument("-4", dest="ip_version", action="store_const", const=IPVersion.V4,
                        default=IPVersion.UNCONSTRAINED, help="Force IPv4")
    parser.add_argument("-6", dest="ip_version", action="store_const", const=IPVersion.V6,
                        help="Force IPv6")
    parser.add_argument("-C", dest="cont_stat", action="count", default=0,
                        help="Continuous statistics")
    parser.add_argument("-D", dest="no_dup", action="store_true",
                        help="Disable duplicate packet detection")
    parser.add_argument("-F", dest="force", action="count", default=0,
                        help="Force values below the safe limits (-FF for interval 0)")
    parser.add_argument("-q", dest="quiet", action="count", default=0, help="Quiet mode")
    parser.add_argument("-V", action="version",
                        version=f"{PROGRAM_NAME} version {__version__}",
                        help="Show version and exit")
    parser.add_argument("-v", dest="verbose", action="count", default=0,
                        help="Verbose output (repeat for more)")
    parser.add_argument("-i", dest="interval", metavar="interval",
                        help="Seconds between pings (default: 1)")
    parser.add_argument("-M", dest="transport_method", metavar="transport_method",
                        help="asm or ssm (default: asm)")
    parser.add_argument("-m", dest="mcast_addr", metavar="mcast_addr",
                        help="Multicast group address")
    parser.add_argument("-p", dest="port", metavar="port", default=DEFAULT_PORT,
                        help=f"Port (default: {DEFAULT_PORT})")
    parser.add_argument("-R", dest="rcvbuf", metavar="rcvbuf",
                        help="Receive socket buffer size")
    parser.add_argument("-r", dest="rate_limit", metavar="rate_limit",
                        help="Seconds between two answered packets")
    parser.add_argument("-S", dest="sndbuf", metavar="sndbuf",
                        help="Send socket buffer size")
    parser.add_argument("-T", dest="timeout", metavar="timeout",
                        help="Seconds after which to exit")
    parser.add_argument("-t", dest="ttl", metavar="ttl",
                        help=f"Multicast TTL (default: {DEFAULT_TTL})")
    parser.add_argument("-w", dest="wait_time", metavar="wait_time",
                        help="Seconds to wait for other nodes before exit (-1 waits forever)")
    parser.add_argument("hosts", nargs="*", metavar="remote_addr",
                        help="Participating hosts, including this one")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> Options:
    """
    Parse and validate command-line arguments.

    Args:
        argv: Arguments without the program name (sys.argv[1:] if None)

    Returns:
        Validated options with derived values filled in

    Raises:
        UsageError: On any invalid value
    """
    if argv is None:
        argv = sys.argv[1:]
    args = create_parser().parse_intermixed_args(join_option_values(argv))

    options = Options(
        hosts=list(args.hosts or []),
        ip_version=args.ip_version,
        mcast_addr=args.mcast_addr,
        port=args.port,
        quiet=args.quiet,
        verbose=args.verbose,
        cont_stat=args.cont_stat,
        force=args.force,
    )

    if args.transport_method is not None:
        options.transport_method = parse_transport_method(args.transport_method)
    if args.rcvbuf is not None:
        options.rcvbuf_size = parse_buffer_size("R", args.rcvbuf, MIN_RCVBUF_SIZE)
    if args.sndbuf is not None:
        options.sndbuf_size = parse_buffer_size("S", args.sndbuf, MIN_SNDBUF_SIZE)
    if args.ttl is not None:
        options.ttl = parse_ttl(args.ttl)
    if args.timeout is not None:
        options.timeout_time = parse_seconds("T", args.timeout)
    if args.interval is not None:
        options.wait_time = parse_seconds("i", args.interval)
    if args.rate_limit is not None:
        options.rate_limit_time = parse_seconds("r", args.rate_limit)
    if args.wait_time is not None:
        options.wait_for_finish_time = parse_seconds("w", args.wait_time, allow_forever=True)

    if options.force < 1:
        if options.wait_time < DEFAULT_WAIT_TIME:
            raise UsageError(
                f"illegal number, -i argument {options.wait_time} ms < "
                f"{DEFAULT_WAIT_TIME} ms. Use -F to force."
            )
        if options.ttl < DEFAULT_TTL:
            raise UsageError(
                f"illegal number, -t argument {options.ttl} < {DEFAULT_TTL}. "
                "Use -F to force."
            )

    if options.force < 2 and options.wait_time == 0:
        raise UsageError(
            f"illegal number, -i argument {options.wait_time} ms < 1 ms. Use -FF to force."
        )

    if args.wait_time is None:
        options.wait_for_finish_time = options.wait_time * DEFAULT_WFF_TIME_MUL

    if options.wait_time == 0 or args.no_dup:
        options.dup_buf_items = 0
    else:
        # + 1 covers truncation
        options.dup_buf_items = max(
            (DUP_BUF_SECS * 1000) // options.wait_time + 1, MIN_DUP_BUF_ITEMS
        )

    if args.rate_limit is None:
        options.rate_limit_time = options.wait_time

    return options
