"""
RecalculationEngine: fixed-point recomputation of derived attributes.

Each model owns one engine. ``request()`` is what attributes call (through
their owner) after any value change:

- Inside a running asyncio loop, requests collapse into one pending Task. The
  Task is created on the first request and starts on the next loop iteration,
  so every mutation made in the same tick is covered by one settle.
- Requests arriving while a pass is running only flag another sweep and
  return the same Task.
- Without a running loop the pass settles synchronously before ``request()``
  returns. Derivations must then be plain functions.

A pass is an explicit loop: sweep every derived attribute in plan order,
store each derivation result with ``attribute.assign_derived()``, leaving
``is_set`` alone, and sweep again while any change (or external request)
arrived during the sweep. A failed Task is logged as soon as it finishes, so
the error is reported even if no caller awaits ``ready()``.
"""

import asyncio
import inspect
import logging
from graphlib import CycleError, TopologicalSorter
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from modelstate.config import get_engine_config
from modelstate.exceptions import ModelDefinitionError, RecalculationError

if TYPE_CHECKING:
    from modelstate.attribute import Attribute
    from modelstate.kinds import AttributeKind
    from modelstate.model import Model

logger = logging.getLogger(__name__)


def build_calculation_plan(kinds: Dict[str, 'AttributeKind']) -> Tuple[str, ...]:
    """Order derived attributes so dependencies come first.

    Independent attributes keep their declaration order.

    Args:
        kinds: Attribute name -> kind, in declaration order

    Returns:
        Names of derived attributes in evaluation order

    Raises:
        ModelDefinitionError: unknown dependency or dependency cycle
    """
    derived = [name for name, kind in kinds.items() if kind.is_derived]
    position = {name: index for index, name in enumerate(derived)}

    sorter = TopologicalSorter()
    for name in derived:
        dependencies = []
        for dependency in kinds[name].depends_on:
            if dependency not in kinds:
                raise ModelDefinitionError(
                    f"Attribute {name!r} depends on undeclared attribute {dependency!r}"
                )
            # Plain attributes are always current; only derived ones need ordering
            if dependency in position:
                dependencies.append(dependency)
        sorter.add(name, *dependencies)

    plan: List[str] = []
    try:
        sorter.prepare()
    except CycleError as e:
        raise ModelDefinitionError(f"Derived attributes form a cycle: {e.args[1]}") from None
    while sorter.is_active():
        ready = sorted(sorter.get_ready(), key=position.__getitem__)
        plan.extend(ready)
        sorter.done(*ready)
    return tuple(plan)


class RecalculationEngine:
    """Runs recalculation passes for one model."""

    def __init__(self, model: 'Model', plan: Tuple[str, ...]):
        self._model = model
        self._plan = plan
        self._pending: Optional[asyncio.Task] = None
        self._running = False
        self._requested = False

    @property
    def plan(self) -> Tuple[str, ...]:
        return self._plan

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> Optional[asyncio.Task]:
        return self._pending

    def request(self) -> Optional[asyncio.Task]:
        """Ask for a pass.

        Returns:
            The Task that will settle the model, or None if it already settled
            synchronously (no running event loop)
        """
        self._requested = True
        if self._running:
            return self._pending

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            self._settle_now()
            return None

        if self._pending is None or self._pending.done():
            self._pending = loop.create_task(self._settle())
            self._pending.add_done_callback(self._report_failure)
        return self._pending

    def _report_failure(self, task: asyncio.Task) -> None:
        """Log a failed pass; a later request may replace it before anyone awaits it."""
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"{type(self._model).__name__}: recalculation pass failed: {error!r}")

    async def wait(self) -> None:
        """Wait until the pending pass (if any) has settled; re-raise its failure."""
        while self._pending is not None and not self._pending.done():
            await asyncio.shield(self._pending)
        if self._pending is not None:
            self._pending.result()

    # ========== PASSES ==========

    def _attributes(self) -> List['Attribute']:
        return [self._model.attribute(name) for name in self._plan]

    def _derive(self, attribute: 'Attribute') -> Any:
        return attribute.kind.calculate(self._model, attribute.get())

    def _next_sweep(self, sweeps: int) -> int:
        """Consume the request flag and enforce the sweep limit."""
        self._requested = False
        sweeps += 1
        limit = get_engine_config().max_recalculation_passes
        if sweeps > limit:
            message = (
                f"{type(self._model).__name__}: derived attributes did not converge "
                f"after {limit} sweeps"
            )
            logger.error(message)
            raise RecalculationError(message)
        return sweeps

    async def _settle(self) -> None:
        self._running = True
        sweeps = 0
        try:
            # Outer loop: listeners of the settle events may request another pass
            while self._requested:
                while self._requested:
                    sweeps = self._next_sweep(sweeps)
                    for attribute in self._attributes():
                        value = self._derive(attribute)
                        if inspect.isawaitable(value):
                            value = await value
                        attribute.assign_derived(value)
                logger.debug(f"{type(self._model).__name__}: settled after {sweeps} sweep(s)")
                self._model._on_settled()
        except Exception:
            self._requested = False
            raise
        finally:
            self._running = False

    def _settle_now(self) -> None:
        self._running = True
        sweeps = 0
        try:
            while self._requested:
                while self._requested:
                    sweeps = self._next_sweep(sweeps)
                    for attribute in self._attributes():
                        value = self._derive(attribute)
                        if inspect.isawaitable(value):
                            if inspect.iscoroutine(value):
                                value.close()
                            raise RecalculationError(
                                f"Derivation of {attribute.name!r} returned an awaitable "
                                f"outside a running event loop"
                            )
                        attribute.assign_derived(value)
                logger.debug(f"{type(self._model).__name__}: settled synchronously after {sweeps} sweep(s)")
                self._model._on_settled()
        except Exception:
            self._requested = False
            raise
        finally:
            self._running = False
