"""
Branch snapshots for attribute commit/revert history.

A branch is a named slot holding the value an attribute had when it was last
committed to that branch. Three names are well-known:

- DEFAULT_BRANCH: last committed baseline (dirty checks compare against it)
- PREVIOUS_BRANCH: state immediately before the latest change or revert
- LISTEN_BRANCH: nested attributes only, the sub-model currently subscribed to
"""

from dataclasses import dataclass
from typing import Any


DEFAULT_BRANCH = 'DEFAULT_BRANCH'
PREVIOUS_BRANCH = 'PREVIOUS_BRANCH'
LISTEN_BRANCH = 'LISTEN_BRANCH'


@dataclass(frozen=True)
class BranchSnapshot:
    """Immutable snapshot of one attribute's state.

    ``value`` is the canonical (post-codec) value, never the external one.
    """
    value: Any
    is_set: bool


def commit_event_name(branch: str, attribute_name: str) -> str:
    """Event fired on the owning model when an attribute commits to ``branch``.

    The default branch has no prefix: ``commit:<name>``. Any other branch
    yields ``<branch>:commit:<name>``.
    """
    prefix = '' if branch == DEFAULT_BRANCH else f'{branch}:'
    return f'{prefix}commit:{attribute_name}'
