"""
Attribute: one typed, observable value of a model with branch-based history.

An Attribute holds a canonical value (post-codec), an ``is_set`` flag and a
map of branch snapshots. It never talks to its model directly: it is given an
AttributeOwner at construction and reports through its three callbacks.

State machine:
    set(v)          PREVIOUS <- current, value <- codec(v), is_set <- True, emit change
    unset()         PREVIOUS <- current, value <- default, is_set <- False, emit change
    derived value   like set(v), but is_set keeps its state
    commit(b)       branches[b] <- current (only if different), emit commit event
    revert(b)       PREVIOUS <- current, current <- branches[b], emit change

Dirty checks compare canonical values only; ``is_set`` is restored by revert
but never compared.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from modelstate.branches import (
    BranchSnapshot,
    DEFAULT_BRANCH,
    PREVIOUS_BRANCH,
    commit_event_name,
)
from modelstate.exceptions import AttributeValidationError, BranchNotFoundError

if TYPE_CHECKING:
    from modelstate.kinds import AttributeKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttributeOwner:
    """Callbacks an attribute uses to reach its owning model.

    notify_changed: called with the attribute name after every value change
    notify_committed: called with the full commit event name
    request_recalculation: asks the model for a recalculation pass; the
        attribute never waits for it
    """
    notify_changed: Callable[[str], None]
    notify_committed: Callable[[str], None]
    request_recalculation: Callable[[], Any]

    @classmethod
    def detached(cls) -> 'AttributeOwner':
        """Owner that ignores every notification (standalone attributes)."""
        return cls(
            notify_changed=lambda name: None,
            notify_committed=lambda event: None,
            request_recalculation=lambda: None,
        )


class Attribute:
    """Scalar attribute: value + is_set + branch snapshots."""

    def __init__(
        self,
        name: str,
        kind: 'AttributeKind',
        owner: Optional[AttributeOwner] = None,
        initial: Any = None,
    ):
        """
        Seed the attribute and record the construction baseline.

        Args:
            name: Attribute name on the owning model (used in event names)
            kind: Descriptor supplying codec, default, validator and derivation
            owner: Callbacks into the owning model (detached if omitted)
            initial: Initial external value; None means "use the default"
        """
        self.name = name
        self.kind = kind
        self._owner = owner or AttributeOwner.detached()
        self._branches: Dict[str, BranchSnapshot] = {}

        if initial is None:
            self._is_set = False
            seed = kind.get_default()
        else:
            self._is_set = True
            seed = initial
        self._value = self._canonicalize(seed)

        # Baseline: construction never leaves the attribute dirty
        self._store_snapshot(DEFAULT_BRANCH)

    # ========== CODEC ==========

    def _canonicalize(self, value: Any) -> Any:
        return self.kind.codec.canonicalize(value)

    def _externalize(self, value: Any) -> Any:
        return self.kind.codec.externalize(value)

    def parse(self, value: Any) -> Any:
        """Deprecated alias: canonical form of ``value``."""
        return self._canonicalize(value)

    # ========== ACCESSORS ==========

    def get(self) -> Any:
        """Externally visible value."""
        return self._externalize(self._value)

    def is_set(self) -> bool:
        """True once an explicit (non-default) value has been assigned."""
        return self._is_set

    def is_equal(self, value: Any) -> bool:
        """Compare ``value`` with the current value by canonical form."""
        return self.kind.codec.equals(self._value, self._canonicalize(value))

    def to_json(self) -> Any:
        return self.get()

    # ========== MUTATION ==========

    def set(self, value: Any) -> None:
        """Assign a new external value.

        ``None`` always routes to ``unset()`` and never reaches the codec, even
        for kinds where None could be a meaningful canonical value. Callers
        rely on None as the unset sentinel, so an explicit None can never be
        stored.
        """
        if value is None:
            self.unset()
            return
        self._assign(value, is_set=True)

    def unset(self) -> None:
        """Reset to the default and mark the attribute unset.

        The attribute ends unset even when the default equals the prior value.
        """
        if not self._assign(self.kind.get_default(), is_set=False):
            self._is_set = False

    def assign_derived(self, value: Any) -> None:
        """Store a derivation result without touching ``is_set``.

        A None result stores the default. Derivations can therefore keep
        testing ``is_set`` to tell user input from computed values.
        """
        if value is None:
            value = self.kind.get_default()
        self._assign(value, is_set=None)

    def _assign(self, value: Any, is_set: Optional[bool]) -> bool:
        """Swap in ``value`` and the flag, then emit; None keeps the flag.

        Returns:
            True if the value changed
        """
        canonical = self._canonicalize(value)
        if self.kind.codec.equals(self._value, canonical):
            return False
        self.commit(PREVIOUS_BRANCH)
        self._value = canonical
        if is_set is not None:
            self._is_set = is_set
        logger.debug(f"Attribute {self.name!r} changed to {canonical!r}")
        self._emit_change()
        return True

    # ========== BRANCHES ==========

    def _store_snapshot(self, branch: str) -> None:
        self._branches[branch] = BranchSnapshot(value=self._value, is_set=self._is_set)

    def _differs_from(self, branch: str) -> bool:
        snapshot = self._branches.get(branch)
        if snapshot is None:
            return True
        return not self.kind.codec.equals(self._value, snapshot.value)

    def _snapshot(self, branch: str) -> BranchSnapshot:
        try:
            return self._branches[branch]
        except KeyError:
            raise BranchNotFoundError(
                f"Attribute {self.name!r} has nothing committed to branch {branch!r}"
            ) from None

    def is_changed(self, branch: str = DEFAULT_BRANCH) -> bool:
        """True iff the current value differs from the snapshot at ``branch``."""
        return self._differs_from(branch)

    def commit(self, branch: str = DEFAULT_BRANCH) -> bool:
        """Record the current state in ``branch``.

        Returns:
            True if the branch snapshot changed (and a commit event fired)
        """
        if not self._differs_from(branch):
            return False
        self._store_snapshot(branch)
        self._emit_commit(branch)
        return True

    def revert(self, branch: str = DEFAULT_BRANCH) -> bool:
        """Restore value and is_set from ``branch``.

        The discarded state is committed to PREVIOUS_BRANCH first, so
        ``previous()`` shows what was just reverted.

        Returns:
            True if anything changed
        """
        snapshot = self._snapshot(branch)
        if self.kind.codec.equals(self._value, snapshot.value):
            return False
        self.commit(PREVIOUS_BRANCH)
        self._value = snapshot.value
        self._is_set = snapshot.is_set
        logger.debug(f"Attribute {self.name!r} reverted to {branch}")
        self._emit_change()
        return True

    def get_last_committed(self, branch: str = DEFAULT_BRANCH) -> Any:
        """External value stored at ``branch``."""
        return self._externalize(self._snapshot(branch).value)

    def previous(self) -> Any:
        """External value before the latest change, or None if there was none."""
        if PREVIOUS_BRANCH not in self._branches:
            return None
        return self.get_last_committed(PREVIOUS_BRANCH)

    # ========== VALIDATION ==========

    def compute_validation_problem(self) -> Any:
        """Ask the kind's validator what is wrong; falsy means valid."""
        validator = self.kind.validator
        if validator is None:
            return None
        return validator(self.get())

    async def validate(self) -> bool:
        """Resolve to True, or raise AttributeValidationError."""
        problem = self.compute_validation_problem()
        if not problem:
            return True
        if isinstance(problem, AttributeValidationError):
            if problem.attribute is None:
                problem.attribute = self.name
            raise problem
        raise AttributeValidationError(str(problem), attribute=self.name)

    async def ready(self) -> None:
        """Scalar attributes have nothing pending."""
        return None

    def dispose(self) -> None:
        """Release resources held by the attribute (none for scalars)."""
        return None

    # ========== NOTIFICATION ==========

    def _emit_change(self) -> None:
        self._owner.notify_changed(self.name)
        self._owner.request_recalculation()

    def _emit_commit(self, branch: str) -> None:
        event = commit_event_name(branch, self.name)
        logger.debug(f"Attribute {self.name!r} committed: {event}")
        self._owner.notify_committed(event)

    def __repr__(self) -> str:
        flag = 'set' if self._is_set else 'unset'
        return f"{type(self).__name__}({self.name!r}, {self._value!r}, {flag})"
