"""Shared fixtures: a resolver backed by a fixed host table."""

import ipaddress

import pytest

from omping.addresses import Endpoint, IPVersion
from omping.errors import ResolveError
from omping.resolver import Resolver

HOSTS = {
    "h1": ["192.0.2.1", "2001:db8::1"],
    "h2": ["192.0.2.2", "2001:db8::2"],
    "h2-alias": ["192.0.2.2", "2001:db8::2"],
    "h3": ["2001:db8::3", "192.0.2.3"],
    "h4": ["192.0.2.4"],
    "h6": ["2001:db8::6"],
    "loop": ["127.0.0.1"],
    "loop6": ["::1"],
    "mcast-both": ["239.1.1.1", "ff05::2"],
}

INTERFACES = {
    "lo": ["127.0.0.1", "::1"],
    "eth0": ["192.0.2.1", "2001:db8::1"],
}


class TableResolver(Resolver):
    """Resolver that answers from a dict instead of DNS."""

    def __init__(self, hosts=None, interfaces=None):
        self.hosts = HOSTS if hosts is None else hosts
        self._interfaces = INTERFACES if interfaces is None else interfaces
        self.resolved = []

    def resolve(self, host, port, ip_version):
        self.resolved.append(host)
        addresses = self.hosts.get(host, [host])

        candidates = []
        for text in addresses:
            try:
                address = ipaddress.ip_address(text)
            except ValueError:
                raise ResolveError(f"Can't get address info for {host}") from None
            if ip_version is IPVersion.UNCONSTRAINED or address.version == ip_version.value:
                candidates.append(Endpoint(address, int(port)))

        if not candidates:
            raise ResolveError(f"Can't get address info for {host}")
        return tuple(candidates)

    def interfaces(self):
        return {
            ifname: [Endpoint(ipaddress.ip_address(a)) for a in addrs]
            for ifname, addrs in self._interfaces.items()
        }


@pytest.fixture
def resolver():
    return TableResolver()
