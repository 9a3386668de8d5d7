"""
Persistent models: fetch/save/remove through an external Storage adapter.

The storage adapter is the only seam to persistence; values it returns enter
the model through the regular ``set`` path so dirty tracking and
recalculation behave exactly as for user edits.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Mapping, Optional

from modelstate.exceptions import ModelDestructedError, ModelStateError
from modelstate.model import Model

logger = logging.getLogger(__name__)


async def _resolve(result: Any) -> Any:
    """Await ``result`` if the storage returned an awaitable."""
    if inspect.isawaitable(result):
        return await result
    return result


class Storage(ABC):
    """
    Abstract storage adapter.

    Every method may return its result directly or as an awaitable.
    """

    @abstractmethod
    def find(self, model: 'PersistentModel') -> Mapping[str, Any]:
        """
        Load stored values for ``model`` (identified by ``model.get_id()``).

        Raises:
            Any exception if the record does not exist
        """
        pass

    @abstractmethod
    def insert(self, model: 'PersistentModel') -> Any:
        """
        Store a new record.

        Returns:
            The id assigned to the record
        """
        pass

    @abstractmethod
    def update(self, model: 'PersistentModel') -> None:
        """Overwrite the stored record of an existing model."""
        pass

    @abstractmethod
    def remove(self, model: 'PersistentModel') -> None:
        """Delete the stored record of ``model``."""
        pass


class PersistentModel(Model):
    """Model with an id and a storage adapter."""

    storage: ClassVar[Optional[Storage]] = None

    def __init__(self, data: Optional[Mapping[str, Any]] = None, id: Any = None):
        """
        Args:
            data: Initial attribute values
            id: Id of an existing stored record (fetch() loads it)
        """
        self._id = id
        super().__init__(data)

    def get_id(self) -> Any:
        return self._id

    def is_new(self) -> bool:
        return self._id is None

    def _get_storage(self) -> Storage:
        if self.storage is None:
            raise ModelStateError(f"{type(self).__name__} has no storage configured")
        return self.storage

    def _ensure_alive(self, operation: str) -> None:
        if self.destructed:
            raise ModelDestructedError(f"Cannot {operation} {type(self).__name__}: model is destructed")

    async def fetch(self) -> None:
        """Load values from storage, recalculate, and commit them as the baseline."""
        self._ensure_alive('fetch')
        if self.is_new():
            raise ModelStateError(f"Cannot fetch a new {type(self).__name__}")
        await self.ready()
        data = await _resolve(self._get_storage().find(self))
        values = {name: value for name, value in dict(data).items() if name in self}
        self.set(values)
        await self.ready()
        self.commit()
        logger.debug(f"Fetched {type(self).__name__} id={self._id!r}")
        self.trigger('fetch')

    async def save(self) -> None:
        """Validate and store the model; commits on success."""
        self._ensure_alive('save')
        await self.ready()
        await self.validate()
        storage = self._get_storage()
        if self.is_new():
            self._id = await _resolve(storage.insert(self))
            logger.debug(f"Inserted {type(self).__name__} id={self._id!r}")
            # The new id is visible to derivations of parent models
            self.calculate()
        else:
            await _resolve(storage.update(self))
            logger.debug(f"Updated {type(self).__name__} id={self._id!r}")
        self.commit()
        await self.ready()
        self.trigger('save')

    async def remove(self) -> None:
        """Delete the stored record and destruct the model."""
        self._ensure_alive('remove')
        if not self.is_new():
            await _resolve(self._get_storage().remove(self))
            logger.debug(f"Removed {type(self).__name__} id={self._id!r}")
        self.trigger('remove')
        self.destruct()

    def to_json(self) -> Dict[str, Any]:
        data = {'id': self._id}
        data.update(super().to_json())
        return data
