"""Polyserde: serialize values behind an interface and get the right concrete type back."""

__version__ = "0.1.0"

from . import settings
from .codecs import AbstractCodec
from .codecs import JsonCodec
from .codecs import MsgpackCodec
from .codecs import transparent
from .envelope import Envelope
from .envelope import deserialize
from .envelope import dumps
from .envelope import loads
from .envelope import serialize
from .exceptions import DecodeError
from .exceptions import DuplicateKeyConflict
from .exceptions import EncodeError
from .exceptions import EnvelopeError
from .exceptions import InternalError
from .exceptions import PayloadInvalidError
from .exceptions import PolyserdeError
from .exceptions import RegistryError
from .exceptions import UnexpectedTypeError
from .exceptions import UnknownKeyError
from .interface import Polymorphic
from .plugins.manager import _initialize_plugin_system
from .registry import CapabilityKind
from .registry import CapabilityRegistry
from .registry import capability
from .registry import default_registry
from .registry import freeze
from .registry import lookup
from .registry import register

# Initialize hooks system on module import
_initialize_plugin_system()

__all__ = [
    "AbstractCodec",
    "CapabilityKind",
    "CapabilityRegistry",
    "DecodeError",
    "DuplicateKeyConflict",
    "EncodeError",
    "Envelope",
    "EnvelopeError",
    "InternalError",
    "JsonCodec",
    "MsgpackCodec",
    "PayloadInvalidError",
    "PolyserdeError",
    "Polymorphic",
    "RegistryError",
    "UnexpectedTypeError",
    "UnknownKeyError",
    "capability",
    "default_registry",
    "deserialize",
    "dumps",
    "freeze",
    "loads",
    "lookup",
    "register",
    "serialize",
    "settings",
    "transparent",
]
