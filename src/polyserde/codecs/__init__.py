"""Intermediate codecs: the pluggable formats envelope payloads are encoded with."""

from polyserde.codecs.base import AbstractCodec
from polyserde.codecs.builtin import JsonCodec
from polyserde.codecs.builtin import MsgpackCodec
from polyserde.codecs.builtin import transparent

__all__ = [
    "AbstractCodec",
    "JsonCodec",
    "MsgpackCodec",
    "transparent",
]
