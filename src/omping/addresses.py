"""Address records shared by the resolver and the session builder."""

import ipaddress
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from .errors import InternalInvariantError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class IPVersion(Enum):
    """IP version of a session. UNCONSTRAINED means either family works."""
    UNCONSTRAINED = 0
    V4 = 4
    V6 = 6

    @property
    def family(self) -> int:
        """Socket address family for a concrete version."""
        if self is IPVersion.V4:
            return socket.AF_INET
        if self is IPVersion.V6:
            return socket.AF_INET6
        return socket.AF_UNSPEC

    def __str__(self) -> str:
        return f"ipv{self.value}" if self.value else "any"


class Capability(Enum):
    """Families supported by a host, judged from all of its candidates."""
    V4_ONLY = "v4"
    V6_ONLY = "v6"
    BOTH = "both"
    UNSUPPORTED = "unsupported"

    @property
    def version(self) -> IPVersion:
        if self is Capability.V4_ONLY:
            return IPVersion.V4
        if self is Capability.V6_ONLY:
            return IPVersion.V6
        if self is Capability.BOTH:
            return IPVersion.UNCONSTRAINED
        raise InternalInvariantError(f"Capability {self.value} has no IP version")


@dataclass(frozen=True)
class Endpoint:
    """An IPv4 or IPv6 address with port. The address type is the tag."""
    address: IPAddress
    port: int = 0
    flowinfo: int = 0
    scope_id: int = 0

    @property
    def version(self) -> IPVersion:
        return IPVersion(self.address.version)

    @property
    def family(self) -> int:
        return self.version.family

    @property
    def sockaddr(self) -> tuple:
        """Address tuple as accepted by socket.sendto() and friends."""
        if self.address.version == 6:
            return (str(self.address), self.port, self.flowinfo, self.scope_id)
        return (str(self.address), self.port)

    def with_port(self, port: int) -> "Endpoint":
        return Endpoint(self.address, port, self.flowinfo, self.scope_id)

    @classmethod
    def from_sockaddr(cls, sockaddr: tuple) -> "Endpoint":
        """
        Create an endpoint from a getaddrinfo() sockaddr tuple.

        A "%zone" suffix on IPv6 addresses is dropped; the numeric scope id
        travels in the tuple anyway.
        """
        host = sockaddr[0].split("%", 1)[0]
        address = ipaddress.ip_address(host)
        if address.version == 6:
            flowinfo = sockaddr[2] if len(sockaddr) > 2 else 0
            scope_id = sockaddr[3] if len(sockaddr) > 3 else 0
            return cls(address, sockaddr[1], flowinfo, scope_id)
        return cls(address, sockaddr[1])

    def __str__(self) -> str:
        if self.address.version == 6:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"


@dataclass
class AddressEntry:
    """
    One participant.

    Before normalization the entry carries every candidate returned by the
    resolver; afterwards it carries only the one chosen endpoint.
    """
    host_name: str
    candidates: Optional[Tuple[Endpoint, ...]] = None
    resolved: Optional[Endpoint] = None

    def __post_init__(self) -> None:
        if (self.candidates is None) == (self.resolved is None):
            raise InternalInvariantError(
                f"Address entry {self.host_name} must hold either candidates "
                "or a resolved endpoint"
            )

    @property
    def is_resolved(self) -> bool:
        return self.resolved is not None

    def addresses(self) -> List[IPAddress]:
        """All network addresses this entry stands for."""
        if self.resolved is not None:
            return [self.resolved.address]
        return [candidate.address for candidate in self.candidates]


class AddressList:
    """Ordered list of participants. Order follows the command line."""

    def __init__(self, entries: Iterable[AddressEntry] = ()):
        self._entries: List[AddressEntry] = list(entries)

    def append(self, entry: AddressEntry) -> None:
        self._entries.append(entry)

    def without(self, index: int) -> "AddressList":
        """Return a copy of the list with the entry at index removed."""
        return AddressList(e for i, e in enumerate(self._entries) if i != index)

    def contains_address(self, address: IPAddress) -> bool:
        return any(address in entry.addresses() for entry in self._entries)

    def host_names(self) -> List[str]:
        return [entry.host_name for entry in self._entries]

    def __iter__(self) -> Iterator[AddressEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> AddressEntry:
        return self._entries[index]

    def __repr__(self) -> str:
        return f"AddressList({self._entries!r})"


@dataclass(frozen=True)
class LocalMatch:
    """Which list entry is ours, and through which interface."""
    index: int
    ifname: str
    interface: Endpoint
    version: IPVersion


@dataclass(frozen=True)
class LocalAddress:
    """This node's own endpoint in the session."""
    endpoint: Endpoint
    host_name: str
    ifname: str


class TransportMethod(Enum):
    """Multicast membership model."""
    ASM = "asm"
    SSM = "ssm"


@dataclass
class SessionConfig:
    """Everything the ping loop needs, resolved and validated."""
    ip_version: IPVersion
    local_addr: LocalAddress
    mcast_addr: AddressEntry
    port: int
    remote_addrs: AddressList
    single_addr: bool
    ttl: int
    wait_time: int
    transport_method: TransportMethod = TransportMethod.ASM
    quiet: int = 0
    verbose: int = 0
    cont_stat: int = 0
    timeout_time: int = 0
    wait_for_finish_time: int = 0
    dup_buf_items: int = 0
    rate_limit_time: int = 0
    sndbuf_size: int = 0
    rcvbuf_size: int = 0

    @property
    def local_ifname(self) -> str:
        return self.local_addr.ifname
