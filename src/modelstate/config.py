"""
Engine configuration with contextvars-based scoping.

A single EngineConfig is active at any time. ``set_engine_config`` replaces it
for the current context, ``engine_config()`` overrides fields for the duration
of a ``with`` block.

    >>> with engine_config(max_recalculation_passes=5):
    ...     model.set('a', 'x')
"""

import contextvars
import dataclasses
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """Tunables for attribute handling and recalculation."""
    max_recalculation_passes: int = 100  # Sweeps before a pass is declared non-converging
    strict_attributes: bool = True  # Reject undeclared keys in model data

    def __post_init__(self):
        if self.max_recalculation_passes < 1:
            raise ValueError("max_recalculation_passes must be at least 1")


_DEFAULT_CONFIG = EngineConfig()

current_engine_config: contextvars.ContextVar[EngineConfig] = contextvars.ContextVar(
    'current_engine_config', default=_DEFAULT_CONFIG
)


def get_engine_config() -> EngineConfig:
    """Get the engine config active in the current context."""
    return current_engine_config.get()


def set_engine_config(config: EngineConfig) -> None:
    """Replace the engine config for the current context.

    Args:
        config: The new configuration
    """
    current_engine_config.set(config)
    logger.debug(f"Engine config set: {config}")


def reset_engine_config() -> None:
    """Restore the default engine config."""
    current_engine_config.set(_DEFAULT_CONFIG)


@contextmanager
def engine_config(**overrides: Any) -> Generator[EngineConfig, None, None]:
    """Context manager overriding engine config fields within its scope.

    Args:
        **overrides: EngineConfig field values to replace

    Yields:
        The effective config inside the block
    """
    config = dataclasses.replace(current_engine_config.get(), **overrides)
    token = current_engine_config.set(config)
    try:
        yield config
    finally:
        current_engine_config.reset(token)
