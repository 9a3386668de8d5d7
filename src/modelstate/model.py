"""
Model: owner of a declared set of attributes, their events and recalculation.

Attributes are declared as a class-level mapping of name -> AttributeKind.
Subclasses inherit and may override their bases' declarations:

    class Person(Model):
        attributes = {
            'first': kinds.string(default=''),
            'last': kinds.string(default=''),
            'full': kinds.string(
                calculate=lambda model, value: f"{model.get('first')} {model.get('last')}".strip(),
            ),
        }

Lifecycle:
- Each instance creates one Attribute per declaration, seeded from the
  constructor data or the kind's default, and committed as the baseline.
- A recalculation is requested at the end of construction so derived values
  are available after ``ready()`` (immediately, outside an event loop).
- ``destruct()`` releases nested subscriptions and all listeners.

Events triggered on the model's ChangeBus:
- ``change:<name>``: an attribute value changed
- ``commit:<name>`` / ``<branch>:commit:<name>``: an attribute committed
- ``commit`` / ``<branch>:commit``: model-level commit changed something
- ``change``: after a settle in which attributes changed (sorted names)
- ``calculate``: after every settled recalculation pass
"""

import asyncio
import logging
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple

from modelstate.attribute import Attribute, AttributeOwner
from modelstate.branches import DEFAULT_BRANCH
from modelstate.calculation import RecalculationEngine, build_calculation_plan
from modelstate.config import get_engine_config
from modelstate.events import ChangeBus, Listener, Subscription
from modelstate.exceptions import (
    ModelDefinitionError,
    ModelValidationError,
    UnknownAttributeError,
    ValidationError,
)
from modelstate.kinds import AttributeKind

logger = logging.getLogger(__name__)


class Model:
    """Base class for models with typed, observable, versioned attributes."""

    attributes: ClassVar[Dict[str, AttributeKind]] = {}

    # Computed per class in __init_subclass__
    _declared_attributes: ClassVar[Dict[str, AttributeKind]] = {}
    _calculation_plan: ClassVar[Tuple[str, ...]] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        declared: Dict[str, AttributeKind] = {}
        for klass in reversed(cls.__mro__):
            own = klass.__dict__.get('attributes')
            if own:
                declared.update(own)
        for name, kind in declared.items():
            if not isinstance(kind, AttributeKind):
                raise ModelDefinitionError(
                    f"{cls.__name__}.attributes[{name!r}] is not an AttributeKind: {kind!r}"
                )
        cls._declared_attributes = declared
        cls._calculation_plan = build_calculation_plan(declared)
        logger.debug(f"Declared model {cls.__name__}: attributes={list(declared)}, plan={cls._calculation_plan}")

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        """
        Create attributes from ``data`` (or defaults) and request the first pass.

        Args:
            data: Initial external values by attribute name; None values and
                  missing names fall back to defaults
        """
        self._bus = ChangeBus(type(self).__name__)
        self._engine = RecalculationEngine(self, self._calculation_plan)
        self._changed: List[str] = []
        self._destructed = False

        data = self._check_names(dict(data or {}))

        owner = AttributeOwner(
            notify_changed=self._on_attribute_changed,
            notify_committed=self.trigger,
            request_recalculation=self.calculate,
        )
        self._attributes: Dict[str, Attribute] = {
            name: kind.create(name, owner, data.get(name))
            for name, kind in self._declared_attributes.items()
        }
        self.calculate()

    def _check_names(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Drop or reject names that are not declared attributes."""
        unknown = [name for name in data if name not in self._declared_attributes]
        if unknown:
            if get_engine_config().strict_attributes:
                raise UnknownAttributeError(
                    f"{type(self).__name__} has no attribute(s): {', '.join(map(repr, unknown))}"
                )
            logger.debug(f"{type(self).__name__}: ignoring undeclared attributes {unknown}")
        return {name: value for name, value in data.items() if name in self._declared_attributes}

    # ========== ATTRIBUTE ACCESS ==========

    @classmethod
    def attribute_names(cls) -> List[str]:
        return list(cls._declared_attributes)

    def attribute(self, name: str) -> Attribute:
        """Attribute instance for ``name``."""
        try:
            return self._attributes[name]
        except KeyError:
            raise UnknownAttributeError(f"{type(self).__name__} has no attribute {name!r}") from None

    def __contains__(self, name: object) -> bool:
        return name in self._attributes

    def get(self, name: str) -> Any:
        return self.attribute(name).get()

    def set(self, name_or_values: Any, value: Any = None) -> None:
        """Set one attribute, or several from a mapping.

            model.set('a', 1)
            model.set({'a': 1, 'b': 2})
        """
        if isinstance(name_or_values, Mapping):
            values = self._check_names(name_or_values)
            for name, item in values.items():
                self._attributes[name].set(item)
        else:
            self.attribute(name_or_values).set(value)

    def unset(self, name: str) -> None:
        self.attribute(name).unset()

    def is_set(self, name: str) -> bool:
        return self.attribute(name).is_set()

    def previous(self, name: str) -> Any:
        return self.attribute(name).previous()

    def get_last_committed(self, name: str, branch: str = DEFAULT_BRANCH) -> Any:
        return self.attribute(name).get_last_committed(branch)

    # ========== BRANCHES ==========

    def is_changed(self, branch: str = DEFAULT_BRANCH) -> bool:
        """True if any attribute differs from its snapshot at ``branch``."""
        return any(attribute.is_changed(branch) for attribute in self._attributes.values())

    def commit(self, branch: str = DEFAULT_BRANCH) -> bool:
        """Commit every attribute to ``branch``.

        Returns:
            True if at least one attribute committed a change
        """
        committed = [attribute.commit(branch) for attribute in self._attributes.values()]
        changed = any(committed)
        if changed:
            self.trigger('commit' if branch == DEFAULT_BRANCH else f'{branch}:commit')
        return changed

    def revert(self, branch: str = DEFAULT_BRANCH) -> bool:
        """Revert every attribute to ``branch``; returns True if anything changed."""
        reverted = [attribute.revert(branch) for attribute in self._attributes.values()]
        return any(reverted)

    # ========== RECALCULATION ==========

    def calculate(self) -> Optional[asyncio.Task]:
        """Request a recalculation pass.

        Returns:
            Task settling the pass inside a running event loop, or None when the
            pass already settled synchronously
        """
        return self._engine.request()

    async def ready(self) -> None:
        """Wait until nested models and this model's pending pass have settled."""
        for attribute in list(self._attributes.values()):
            await attribute.ready()
        await self._engine.wait()

    def _on_attribute_changed(self, name: str) -> None:
        if name not in self._changed:
            self._changed.append(name)
        self.trigger(f'change:{name}')

    def _on_settled(self) -> None:
        """Called by the engine once a pass reached its fixed point."""
        changed, self._changed = self._changed, []
        if changed:
            self.trigger('change', sorted(changed))
        self.trigger('calculate')

    # ========== VALIDATION / SERIALIZATION ==========

    async def validate(self) -> bool:
        """Validate every attribute.

        Raises:
            ModelValidationError: one or more attributes are invalid
        """
        names = list(self._attributes)
        results = await asyncio.gather(
            *(self._attributes[name].validate() for name in names),
            return_exceptions=True,
        )
        errors: Dict[str, Exception] = {}
        for name, result in zip(names, results):
            if isinstance(result, ValidationError):
                errors[name] = result
            elif isinstance(result, BaseException):
                raise result
        if errors:
            raise ModelValidationError(errors)
        return True

    def to_json(self) -> Dict[str, Any]:
        return {name: attribute.to_json() for name, attribute in self._attributes.items()}

    # ========== EVENTS ==========

    def on(self, event: str, callback: Listener) -> Subscription:
        return self._bus.on(event, callback)

    def off(self, event: str, callback: Optional[Listener] = None) -> int:
        return self._bus.off(event, callback)

    def trigger(self, event: str, *args: Any) -> None:
        self._bus.trigger(event, *args)

    # ========== LIFECYCLE ==========

    @property
    def destructed(self) -> bool:
        return self._destructed

    def destruct(self) -> None:
        """Release nested subscriptions and every listener of this model."""
        if self._destructed:
            return
        for attribute in self._attributes.values():
            attribute.dispose()
        self._bus.clear()
        self._destructed = True
        logger.debug(f"Destructed {type(self).__name__}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_json()!r})"
