"""
NestedAttribute: an attribute whose value is a sub-model instance.

Branch semantics at this layer concern *which* sub-model is bound, not the
sub-model's own dirty state: commit/revert/is_changed/validate/to_json are
delegated to the bound instance.

Change propagation:
- The attribute holds exactly one Subscription to the bound sub-model's
  ``calculate`` event. Every finished recalculation of the sub-model re-emits
  change here with ``from_nested_model=True``.
- Replacing the reference disposes the old subscription and subscribes to the
  new instance. LISTEN_BRANCH records the bound instance so rebinding happens
  once per actual reference change.
"""

import logging
from typing import Any, Optional, TYPE_CHECKING

from modelstate.attribute import Attribute, AttributeOwner
from modelstate.branches import DEFAULT_BRANCH, LISTEN_BRANCH, PREVIOUS_BRANCH
from modelstate.events import Subscription
from modelstate.exceptions import UnsupportedOperationError

if TYPE_CHECKING:
    from modelstate.kinds import NestedKind

logger = logging.getLogger(__name__)


class NestedAttribute(Attribute):
    """Attribute holding a reference to a sub-model."""

    def __init__(
        self,
        name: str,
        kind: 'NestedKind',
        owner: Optional[AttributeOwner] = None,
        initial: Any = None,
    ):
        self._subscription: Optional[Subscription] = None
        super().__init__(name, kind, owner, initial)
        self._bind_to_model()

    @property
    def model_type(self) -> type:
        return self.kind.model_type

    # ========== UNSUPPORTED ==========

    def is_set(self) -> bool:
        raise UnsupportedOperationError(f"is_set is not supported for nested model attribute {self.name!r}")

    def unset(self) -> None:
        raise UnsupportedOperationError(f"unset is not supported for nested model attribute {self.name!r}")

    # ========== DELEGATED TO THE SUB-MODEL ==========

    async def ready(self) -> None:
        await self._value.ready()

    async def validate(self) -> bool:
        return await self._value.validate()

    def is_changed(self, branch: str = DEFAULT_BRANCH) -> bool:
        return self._value.is_changed(branch)

    def commit(self, branch: str = DEFAULT_BRANCH) -> bool:
        return self._value.commit(branch)

    def revert(self, branch: str = DEFAULT_BRANCH) -> bool:
        return self._value.revert(branch)

    def to_json(self) -> Any:
        return self._value.to_json()

    # ========== REFERENCE ==========

    def is_equal(self, value: Any) -> bool:
        """Identity comparison on the sub-model reference."""
        return self._value is value

    def set(self, value: Any) -> None:
        """Replace the sub-model, or forward data into the bound one.

        An instance of the model type replaces the reference. Any other value
        is passed to the bound sub-model's own ``set`` and mutates it in place.
        The change then reaches this attribute once, through the sub-model's
        ``calculate`` event.
        """
        if value is None:
            self.unset()
            return
        if self.is_equal(value):
            return
        if isinstance(value, self.model_type):
            self._store_snapshot(PREVIOUS_BRANCH)
            self._value = value
            self._is_set = True
            logger.debug(f"Nested attribute {self.name!r} now references {value!r}")
            self._emit_change(from_nested_model=False)
        else:
            self._is_set = True
            self._value.set(value)

    def assign_derived(self, value: Any) -> None:
        self.set(value)

    def _emit_change(self, from_nested_model: bool = False) -> None:
        if not from_nested_model:
            self._bind_to_model()
        super()._emit_change()

    def _on_model_calculated(self, event: str, *args: Any) -> None:
        self._emit_change(from_nested_model=True)

    def _bind_to_model(self) -> None:
        listened = self._branches.get(LISTEN_BRANCH)
        if listened is not None and listened.value is self._value:
            return
        if self._subscription is not None:
            self._subscription.dispose()
            logger.debug(f"Nested attribute {self.name!r} released {listened.value!r}")
        self._subscription = self._value.on('calculate', self._on_model_calculated)
        self._store_snapshot(LISTEN_BRANCH)

    def dispose(self) -> None:
        """Release the subscription to the bound sub-model."""
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None
        self._branches.pop(LISTEN_BRANCH, None)
