"""
Attribute state management for structured data models.

This package provides typed, observable model attributes with branch-based
commit/revert history and a recalculation engine that keeps derived
attributes consistent after every mutation.

Key Features:
- Attribute kinds composed from a codec, default, validator and derivation
- Named branches (DEFAULT, PREVIOUS, custom) for commit/revert/dirty tracking
- Nested model attributes with explicit subscription ownership
- Fixed-point recalculation of derived attributes, asyncio-aware
- Contextvars-scoped engine configuration

Quick Start:
    >>> from modelstate import Model, kinds
    >>>
    >>> class Item(Model):
    ...     attributes = {
    ...         'a': kinds.string(default='a'),
    ...         'b': kinds.string(calculate=lambda model, value: model.get('a') + 'x'),
    ...     }
    >>>
    >>> item = Item()
    >>> item.set('a', 'q')
    >>> item.get('b')
    'qx'
    >>> item.is_changed()
    True
    >>> item.revert()
    True
    >>> item.get('a'), item.previous('a')
    ('a', 'q')

Outside a running event loop recalculation settles synchronously; inside one,
``await item.ready()`` waits for the pending pass.

Modules:
    - attribute: Attribute state machine and owner callbacks
    - nested: NestedAttribute for sub-model references
    - kinds: Attribute kind descriptors and factories
    - codecs: Value codecs (canonical form and equality)
    - branches: Branch names and snapshots
    - calculation: Recalculation engine
    - events: ChangeBus and subscriptions
    - model: Model base class
    - persistent: Storage-backed models
    - config: Engine configuration
"""

from modelstate import kinds

# Attributes
from modelstate.attribute import Attribute, AttributeOwner
from modelstate.nested import NestedAttribute
from modelstate.kinds import AttributeKind, NestedKind

# Codecs
from modelstate.codecs import (
    ValueCodec,
    StringCodec,
    NumberCodec,
    BooleanCodec,
    ListCodec,
    MappingCodec,
    ModelCodec,
)

# Branches
from modelstate.branches import (
    DEFAULT_BRANCH,
    PREVIOUS_BRANCH,
    LISTEN_BRANCH,
    BranchSnapshot,
)

# Events
from modelstate.events import ChangeBus, Subscription

# Models
from modelstate.calculation import RecalculationEngine, build_calculation_plan
from modelstate.model import Model
from modelstate.persistent import PersistentModel, Storage

# Configuration
from modelstate.config import (
    EngineConfig,
    engine_config,
    get_engine_config,
    set_engine_config,
    reset_engine_config,
)

# Errors
from modelstate.exceptions import (
    ModelStateError,
    ModelDefinitionError,
    UnknownAttributeError,
    BranchNotFoundError,
    UnsupportedOperationError,
    CodecError,
    RecalculationError,
    ModelDestructedError,
    ValidationError,
    AttributeValidationError,
    ModelValidationError,
)

__all__ = [
    'kinds',
    # Attributes
    'Attribute',
    'AttributeOwner',
    'NestedAttribute',
    'AttributeKind',
    'NestedKind',
    # Codecs
    'ValueCodec',
    'StringCodec',
    'NumberCodec',
    'BooleanCodec',
    'ListCodec',
    'MappingCodec',
    'ModelCodec',
    # Branches
    'DEFAULT_BRANCH',
    'PREVIOUS_BRANCH',
    'LISTEN_BRANCH',
    'BranchSnapshot',
    # Events
    'ChangeBus',
    'Subscription',
    # Models
    'RecalculationEngine',
    'build_calculation_plan',
    'Model',
    'PersistentModel',
    'Storage',
    # Configuration
    'EngineConfig',
    'engine_config',
    'get_engine_config',
    'set_engine_config',
    'reset_engine_config',
    # Errors
    'ModelStateError',
    'ModelDefinitionError',
    'UnknownAttributeError',
    'BranchNotFoundError',
    'UnsupportedOperationError',
    'CodecError',
    'RecalculationError',
    'ModelDestructedError',
    'ValidationError',
    'AttributeValidationError',
    'ModelValidationError',
]

__version__ = '1.0.0'
__description__ = 'Attribute state management for structured data models'
