"""
Attribute kinds: declarative descriptors composed from a codec, a default,
an optional validator and an optional derivation.

Kinds are immutable; ``derive()`` produces a variant instead of subclassing:

    >>> Name = string(default='anonymous')
    >>> Greeting = string(calculate=lambda model, value: value or 'Hi ' + model.get('name'))
    >>> Upper = Name.derive(validator=lambda value: None if value.isupper() else 'not upper')
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type, TYPE_CHECKING

from modelstate.attribute import Attribute, AttributeOwner
from modelstate.codecs import (
    BooleanCodec,
    ListCodec,
    MappingCodec,
    ModelCodec,
    NumberCodec,
    StringCodec,
    ValueCodec,
)
from modelstate.nested import NestedAttribute

if TYPE_CHECKING:
    from modelstate.model import Model

Validator = Callable[[Any], Any]
Derivation = Callable[['Model', Any], Any]


@dataclass(frozen=True)
class AttributeKind:
    """Descriptor for one kind of attribute.

    codec: Converts external values to canonical form and defines equality
    default: Value, or zero-argument producer, used while unset
    validator: Returns a problem (message or AttributeValidationError) or falsy
    calculate: Derivation ``(model, current_value) -> value | awaitable``
    depends_on: Derived attributes that must be computed before this one
    """
    codec: ValueCodec
    default: Any = None
    validator: Optional[Validator] = None
    calculate: Optional[Derivation] = None
    depends_on: Tuple[str, ...] = ()

    def __post_init__(self):
        if isinstance(self.depends_on, str):
            object.__setattr__(self, 'depends_on', (self.depends_on,))
        else:
            object.__setattr__(self, 'depends_on', tuple(self.depends_on))

    @property
    def is_derived(self) -> bool:
        return self.calculate is not None

    def get_default(self) -> Any:
        """Default value, calling the producer if one was given."""
        return self.default() if callable(self.default) else self.default

    def derive(self, **changes: Any) -> 'AttributeKind':
        """Copy of this kind with some fields replaced."""
        return dataclasses.replace(self, **changes)

    def create(self, name: str, owner: Optional[AttributeOwner] = None, initial: Any = None) -> Attribute:
        return Attribute(name, self, owner, initial)


@dataclass(frozen=True)
class NestedKind(AttributeKind):
    """Kind for attributes holding a sub-model of ``model_type``."""
    model_type: Optional[Type] = None

    def __post_init__(self):
        super().__post_init__()
        if self.model_type is None:
            raise TypeError("NestedKind requires a model_type")

    def create(self, name: str, owner: Optional[AttributeOwner] = None, initial: Any = None) -> NestedAttribute:
        return NestedAttribute(name, self, owner, initial)


def string(**options: Any) -> AttributeKind:
    return AttributeKind(codec=StringCodec(), **options)


def number(**options: Any) -> AttributeKind:
    return AttributeKind(codec=NumberCodec(), **options)


def boolean(**options: Any) -> AttributeKind:
    return AttributeKind(codec=BooleanCodec(), **options)


def array(**options: Any) -> AttributeKind:
    """Sequence attribute; compared element-wise."""
    return AttributeKind(codec=ListCodec(), **options)


def mapping(**options: Any) -> AttributeKind:
    return AttributeKind(codec=MappingCodec(), **options)


def nested(model_type: Type, **options: Any) -> NestedKind:
    """Attribute holding a sub-model; plain data builds or updates the instance."""
    return NestedKind(codec=ModelCodec(model_type), model_type=model_type, **options)
