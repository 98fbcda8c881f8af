"""Turn remote host names and options into a validated session configuration."""

import logging
from typing import Optional, Sequence, Tuple

from .addresses import (
    AddressEntry,
    AddressList,
    Capability,
    IPVersion,
    LocalAddress,
    LocalMatch,
    SessionConfig,
)
from .errors import (
    AllocationError,
    InternalInvariantError,
    LoopbackRejectedError,
    UnreachableConfigurationError,
    UsageError,
)
from .log import DEBUG2
from .options import Options
from .resolver import Resolver

logger = logging.getLogger(__name__)

# Multicast groups used when -m isn't given
DEFAULT_MCAST4_ADDR = "232.43.211.234"
DEFAULT_MCAST6_ADDR = "ff3e::4321:1234"


def parse_remote_addrs(
    hosts: Sequence[str], port: str, ip_version: IPVersion, resolver: Resolver
) -> AddressList:
    """
    Resolve remote host names into a list of participants.

    Names resolving to an address that is already in the list are skipped,
    so the first spelling of a host wins.

    Args:
        hosts: Host names in command-line order
        port: Session port
        ip_version: Version hint for resolution (may be UNCONSTRAINED)
        resolver: Address resolver

    Returns:
        List of entries still holding all their candidates

    Raises:
        LoopbackRejectedError: If a host resolves to a loopback address
        UsageError: If no remote address remains
    """
    addrs = AddressList()

    for host in hosts:
        candidates = resolver.resolve(host, port, ip_version)
        if resolver.is_member_of(candidates, addrs):
            logger.debug("address \"%s\" is already in list, skipping", host)
            continue

        if resolver.is_loopback(candidates):
            raise LoopbackRejectedError(
                f"Address {host} looks like loopback. Loopback ping is not supported"
            )

        addrs.append(AddressEntry(host, candidates=candidates))
        logger.debug("new address \"%s\" added to list (position %d)", host, len(addrs) - 1)

    if len(addrs) < 1:
        raise UsageError("at least one remote addresses should be specified")

    return addrs


def _host_capability(entry: AddressEntry, resolver: Resolver) -> Capability:
    capability = resolver.deep_capability(entry.candidates)
    logger.log(DEBUG2, "ipver for %s is %s", entry.host_name, capability.value)

    if capability is Capability.UNSUPPORTED:
        raise UnreachableConfigurationError(
            f"Host {entry.host_name} doesn't support ipv4 or ipv6"
        )
    return capability


def negotiate_ip_version(
    ip_version: IPVersion,
    mcast_addr: Optional[str],
    port: str,
    addrs: AddressList,
    resolver: Resolver,
) -> IPVersion:
    """
    Pick the IP version every participant can use.

    A forced version wins outright. Otherwise a multicast group that only
    has one family decides, provided every host supports that family.
    Otherwise the first single-family host decides and all others must
    support that family too. When everybody supports both, the result is
    UNCONSTRAINED.

    Raises:
        UnreachableConfigurationError: If no common version exists
    """
    if ip_version is not IPVersion.UNCONSTRAINED:
        logger.debug("user forced ip version %s, using that", ip_version)
        return ip_version

    if mcast_addr is not None:
        candidates = resolver.resolve(mcast_addr, port, IPVersion.UNCONSTRAINED)
        mcast_capability = resolver.deep_capability(candidates)
        logger.log(DEBUG2, "mcast ipver for %s is %s", mcast_addr, mcast_capability.value)

        if mcast_capability is Capability.UNSUPPORTED:
            raise UnreachableConfigurationError(
                f"Mcast address {mcast_addr} doesn't support ipv4 or ipv6"
            )

        if mcast_capability is not Capability.BOTH:
            required = mcast_capability.version
            logger.debug(
                "mcast address %s supports only %s, using that", mcast_addr, required
            )

            for entry in addrs:
                capability = _host_capability(entry, resolver)
                if capability is not Capability.BOTH and capability.version is not required:
                    raise UnreachableConfigurationError(
                        f"Multicast address is {required} but host {entry.host_name} "
                        f"supports only {capability.version}"
                    )

            return required

    required = IPVersion.UNCONSTRAINED
    for entry in addrs:
        capability = _host_capability(entry, resolver)
        if capability is not Capability.BOTH:
            required = capability.version
            break

    if required is IPVersion.UNCONSTRAINED:
        logger.debug("Every address supports all IP versions")
        return required

    for entry in addrs:
        capability = _host_capability(entry, resolver)
        if capability is not Capability.BOTH and capability.version is not required:
            raise UnreachableConfigurationError(
                f"Host {entry.host_name} doesn't support IP version {required.value}"
            )

    logger.debug("Every address supports %s", required)
    return required


def resolve_mcast_addr(
    ip_version: IPVersion, mcast_addr: Optional[str], port: str, resolver: Resolver
) -> AddressEntry:
    """
    Resolve the multicast group for the negotiated version.

    Without an explicit group the default group of the version is used.

    Raises:
        UnreachableConfigurationError: If the address isn't multicast
        InternalInvariantError: If the version isn't concrete or the group
            has no address of that version
    """
    if mcast_addr is None:
        if ip_version is IPVersion.V4:
            mcast_addr = DEFAULT_MCAST4_ADDR
        elif ip_version is IPVersion.V6:
            mcast_addr = DEFAULT_MCAST6_ADDR
        else:
            raise InternalInvariantError()

    candidates = resolver.resolve(mcast_addr, port, ip_version)
    for candidate in candidates:
        if resolver.candidate_version(candidate) is ip_version:
            break
    else:
        raise InternalInvariantError()

    entry = AddressEntry(mcast_addr, resolved=candidate)

    if not resolver.is_multicast(entry.resolved):
        raise UnreachableConfigurationError(
            f"Given address {mcast_addr} is not valid multicast address"
        )

    return entry


def session_port(mcast_entry: AddressEntry) -> int:
    """Port of the multicast group, shared by every participant."""
    if mcast_entry.resolved is None:
        raise InternalInvariantError()
    return mcast_entry.resolved.port


def normalize_addrs(addrs: AddressList, ip_version: IPVersion) -> AddressList:
    """
    Reduce every entry to the single endpoint of the negotiated version.

    With an UNCONSTRAINED version the first candidate of either family is
    taken, in resolver order.
    """
    normalized = AddressList()

    for entry in addrs:
        for candidate in entry.candidates:
            version = candidate.version
            if ip_version is IPVersion.UNCONSTRAINED or version is ip_version:
                break
        else:
            raise InternalInvariantError(
                f"Host {entry.host_name} has no {ip_version} address"
            )

        normalized.append(AddressEntry(entry.host_name, resolved=candidate))

    return normalized


def extract_local_addr(
    addrs: AddressList, match: LocalMatch, ip_version: IPVersion
) -> Tuple[LocalAddress, AddressList, bool]:
    """
    Split our own entry off the remote list.

    A lone entry stays in the list: the node then pings only itself.

    Returns:
        Tuple of (local address, remote list, single participant flag)
    """
    if match.interface.version not in (IPVersion.V4, IPVersion.V6):
        raise InternalInvariantError()

    entry = addrs[match.index]
    if entry.resolved is None:
        raise InternalInvariantError()

    local_addr = LocalAddress(
        endpoint=match.interface.with_port(entry.resolved.port),
        host_name=entry.host_name,
        ifname=match.ifname,
    )

    single_addr = len(addrs) == 1
    if not single_addr:
        addrs = addrs.without(match.index)

    logger.debug(
        "local address is %s (%s) on %s, %d remote address(es), %s",
        local_addr.host_name, local_addr.endpoint, local_addr.ifname, len(addrs), ip_version,
    )
    return local_addr, addrs, single_addr


def build_session(options: Options, resolver: Optional[Resolver] = None) -> SessionConfig:
    """
    Resolve and validate all addresses for a session.

    Args:
        options: Parsed command-line options
        resolver: Address resolver (system resolver if not provided)

    Returns:
        Complete session configuration

    Raises:
        OmpingError: On any validation failure
    """
    if resolver is None:
        resolver = Resolver()

    try:
        addrs = parse_remote_addrs(options.hosts, options.port, options.ip_version, resolver)
        ip_version = negotiate_ip_version(
            options.ip_version, options.mcast_addr, options.port, addrs, resolver
        )

        match = resolver.find_local_match(addrs, ip_version)
        ip_version = match.version

        mcast_entry = resolve_mcast_addr(ip_version, options.mcast_addr, options.port, resolver)
        port = session_port(mcast_entry)

        addrs = normalize_addrs(addrs, ip_version)
        local_addr, addrs, single_addr = extract_local_addr(addrs, match, ip_version)
    except MemoryError as e:
        raise AllocationError("Can't alloc memory") from e

    return SessionConfig(
        ip_version=ip_version,
        local_addr=local_addr,
        mcast_addr=mcast_entry,
        port=port,
        remote_addrs=addrs,
        single_addr=single_addr,
        ttl=options.ttl,
        wait_time=options.wait_time,
        transport_method=options.transport_method,
        quiet=options.quiet,
        verbose=options.verbose,
        cont_stat=options.cont_stat,
        timeout_time=options.timeout_time,
        wait_for_finish_time=options.wait_for_finish_time,
        dup_buf_items=options.dup_buf_items,
        rate_limit_time=options.rate_limit_time,
        sndbuf_size=options.sndbuf_size,
        rcvbuf_size=options.rcvbuf_size,
    )
