"""omping - session setup for multicast ping."""

__version__ = "0.0.4"

from .addresses import AddressEntry, AddressList, Endpoint, IPVersion, SessionConfig
from .errors import OmpingError
from .options import Options, parse_args
from .resolver import Resolver
from .session import build_session

__all__ = [
    "AddressEntry",
    "AddressList",
    "Endpoint",
    "IPVersion",
    "OmpingError",
    "Options",
    "Resolver",
    "SessionConfig",
    "build_session",
    "parse_args",
    "__version__",
]
