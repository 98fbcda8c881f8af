"""Hostname resolution and local interface lookup."""

import ipaddress
import logging
import socket
from typing import Dict, List, Sequence, Tuple

import psutil

from .addresses import (
    AddressList,
    Capability,
    Endpoint,
    IPVersion,
    LocalMatch,
)
from .errors import LocalAddressNotFoundError, ResolveError

logger = logging.getLogger(__name__)

# Order in which versions are tried when the session isn't pinned to one
LOCAL_MATCH_PREFERENCE = (IPVersion.V6, IPVersion.V4)


class Resolver:
    """
    Resolves participants through the operating system.

    The session builder only talks to this class. Tests replace resolve()
    and interfaces() to avoid touching DNS and real network interfaces.
    """

    def resolve(self, host: str, port: str, ip_version: IPVersion) -> Tuple[Endpoint, ...]:
        """
        Resolve a host name to every usable address.

        Args:
            host: Host name or numeric address
            port: Port number or service name
            ip_version: Restrict results to this version unless UNCONSTRAINED

        Returns:
            Candidates in resolver order

        Raises:
            ResolveError: If the name can't be resolved
        """
        try:
            results = socket.getaddrinfo(
                host, port, ip_version.family, socket.SOCK_DGRAM
            )
        except (socket.gaierror, UnicodeError) as e:
            raise ResolveError(f"Can't get address info for {host}: {e}") from e

        candidates = []
        for family, _type, _proto, _canonname, sockaddr in results:
            if family not in (socket.AF_INET, socket.AF_INET6):
                continue
            candidates.append(Endpoint.from_sockaddr(sockaddr))

        if not candidates:
            raise ResolveError(f"Can't get address info for {host}")

        logger.debug("%s resolved to %s", host, ", ".join(str(c) for c in candidates))
        return tuple(candidates)

    def interfaces(self) -> Dict[str, List[Endpoint]]:
        """
        Addresses of the interfaces that are up.

        Link-local IPv6 addresses carry the interface index as scope id.

        Returns:
            Dict mapping interface names to their IPv4/IPv6 addresses
        """
        stats = psutil.net_if_stats()
        result: Dict[str, List[Endpoint]] = {}

        for ifname, addrs in psutil.net_if_addrs().items():
            if ifname in stats and not stats[ifname].isup:
                continue

            endpoints = []
            for addr in addrs:
                if addr.family not in (socket.AF_INET, socket.AF_INET6):
                    continue
                try:
                    address = ipaddress.ip_address(addr.address.split("%", 1)[0])
                except ValueError:
                    continue
                scope_id = 0
                if address.version == 6 and address.is_link_local:
                    scope_id = socket.if_nametoindex(ifname)
                endpoints.append(Endpoint(address, scope_id=scope_id))

            if endpoints:
                result[ifname] = endpoints

        return result

    def is_member_of(self, candidates: Sequence[Endpoint], addrs: AddressList) -> bool:
        """True if any candidate address already appears in the list."""
        return any(addrs.contains_address(c.address) for c in candidates)

    def is_loopback(self, candidates: Sequence[Endpoint]) -> bool:
        """True if any candidate is a loopback address."""
        for candidate in candidates:
            address = candidate.address
            if address.is_loopback:
                return True
            if address.version == 6 and address.ipv4_mapped is not None:
                if address.ipv4_mapped.is_loopback:
                    return True
        return False

    def candidate_version(self, candidate: Endpoint) -> IPVersion:
        return candidate.version

    def deep_capability(self, candidates: Sequence[Endpoint]) -> Capability:
        """Families supported by a host, looking at all candidates."""
        versions = {self.candidate_version(c) for c in candidates}
        has_v4 = IPVersion.V4 in versions
        has_v6 = IPVersion.V6 in versions

        if has_v4 and has_v6:
            return Capability.BOTH
        if has_v4:
            return Capability.V4_ONLY
        if has_v6:
            return Capability.V6_ONLY
        return Capability.UNSUPPORTED

    def is_multicast(self, endpoint: Endpoint) -> bool:
        return endpoint.address.is_multicast

    def find_local_match(self, addrs: AddressList, ip_version: IPVersion) -> LocalMatch:
        """
        Find the list entry that is one of our own interface addresses.

        With an UNCONSTRAINED version IPv6 is tried first, then IPv4. The
        version a match was found with is returned as part of the match.

        Raises:
            LocalAddressNotFoundError: If no entry is a local address
        """
        if ip_version is IPVersion.UNCONSTRAINED:
            versions = LOCAL_MATCH_PREFERENCE
        else:
            versions = (ip_version,)

        interfaces = self.interfaces()

        for version in versions:
            for index, entry in enumerate(addrs):
                for candidate in entry.candidates:
                    if self.candidate_version(candidate) is not version:
                        continue
                    for ifname, endpoints in interfaces.items():
                        for endpoint in endpoints:
                            if endpoint.address == candidate.address:
                                logger.debug(
                                    "local address %s (%s) found on %s",
                                    entry.host_name, endpoint.address, ifname,
                                )
                                return LocalMatch(index, ifname, endpoint, version)

        raise LocalAddressNotFoundError("Can't find local address in arguments")
