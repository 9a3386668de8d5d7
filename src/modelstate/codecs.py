"""
Value codecs: conversion between external and canonical attribute values.

Every attribute kind owns one codec. The codec decides what "the same value"
means for dirty checking: two external values are equal iff their canonical
forms compare equal.
"""

import logging
import numbers
from typing import Any, Dict, Optional, Tuple, Type

from modelstate.exceptions import CodecError

logger = logging.getLogger(__name__)


class ValueCodec:
    """Base codec. Concrete attribute kinds must override ``canonicalize``."""

    def canonicalize(self, value: Any) -> Any:
        """Convert an external value to canonical form."""
        raise NotImplementedError(
            f"{type(self).__name__}.canonicalize is not implemented; "
            f"attribute kinds need a concrete codec"
        )

    def externalize(self, value: Any) -> Any:
        """Convert a canonical value back to its external form."""
        return value

    def equals(self, left: Any, right: Any) -> bool:
        """Compare two canonical values."""
        return left == right


class StringCodec(ValueCodec):

    def canonicalize(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)


class NumberCodec(ValueCodec):
    """Keeps ints and floats, parses numeric strings."""

    def canonicalize(self, value: Any) -> Optional[numbers.Real]:
        if value is None:
            return None
        if isinstance(value, bool):
            raise CodecError(f"Boolean {value!r} is not a number")
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            text = value.strip()
            try:
                return int(text)
            except ValueError:
                pass
            try:
                return float(text)
            except ValueError:
                raise CodecError(f"Cannot convert {value!r} to a number") from None
        raise CodecError(f"Cannot convert {type(value).__name__} to a number")


class BooleanCodec(ValueCodec):

    def canonicalize(self, value: Any) -> Optional[bool]:
        if value is None:
            return None
        return bool(value)


class ListCodec(ValueCodec):
    """Stores sequences as tuples so the canonical value cannot be mutated in place."""

    def canonicalize(self, value: Any) -> Optional[Tuple[Any, ...]]:
        if value is None:
            return None
        if isinstance(value, (str, bytes)):
            raise CodecError(f"Expected a sequence, got {type(value).__name__}")
        try:
            return tuple(value)
        except TypeError:
            raise CodecError(f"Expected a sequence, got {type(value).__name__}") from None

    def externalize(self, value: Any) -> Any:
        return None if value is None else list(value)


class MappingCodec(ValueCodec):

    def canonicalize(self, value: Any) -> Optional[Dict[Any, Any]]:
        if value is None:
            return None
        try:
            return dict(value)
        except (TypeError, ValueError):
            raise CodecError(f"Expected a mapping, got {type(value).__name__}") from None

    def externalize(self, value: Any) -> Any:
        return None if value is None else dict(value)


class ModelCodec(ValueCodec):
    """Codec for nested models.

    Instances of ``model_type`` pass through; anything else (including None)
    is treated as initial data for a new instance. Equality is identity: two
    distinct instances holding equal data are different values here.
    """

    def __init__(self, model_type: Type):
        self.model_type = model_type

    def canonicalize(self, value: Any) -> Any:
        if isinstance(value, self.model_type):
            return value
        logger.debug(f"Constructing nested {self.model_type.__name__} from {value!r}")
        return self.model_type(value)

    def equals(self, left: Any, right: Any) -> bool:
        return left is right
