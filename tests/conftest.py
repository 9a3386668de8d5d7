"""Pytest configuration and shared fixtures."""
import itertools

import pytest

from modelstate import Model, PersistentModel, Storage, kinds, reset_engine_config


class Simple(Model):
    """Model with a plain attribute and one derived from it."""
    attributes = {
        'a': kinds.string(default='a'),
        'b': kinds.string(calculate=lambda model, value: model.get('a') + 'x'),
    }


class MemoryStorage(Storage):
    """In-memory storage double: records keyed by integer id."""

    def __init__(self):
        self.records = {}
        self._ids = itertools.count(1)

    def find(self, model):
        return dict(self.records[model.get_id()])

    def insert(self, model):
        record_id = next(self._ids)
        self.records[record_id] = {k: v for k, v in model.to_json().items() if k != 'id'}
        return record_id

    async def update(self, model):
        self.records[model.get_id()] = {k: v for k, v in model.to_json().items() if k != 'id'}

    def remove(self, model):
        del self.records[model.get_id()]


class Persistent(PersistentModel):
    """Stored model whose ``b`` mirrors ``a`` with the leading 'a' swapped for 'b'."""
    storage = MemoryStorage()
    attributes = {
        'a': kinds.string(default='a-0'),
        'b': kinds.string(calculate=lambda model, value: 'b' + model.get('a')[1:]),
    }


class Complex(Model):
    """Model holding a Persistent sub-model and its id as a derived attribute."""
    attributes = {
        'nested': kinds.nested(Persistent),
        'nested_id': kinds.number(calculate=lambda model, value: model.get('nested').get_id()),
    }


@pytest.fixture(autouse=True)
def reset_config():
    """Reset engine config before and after each test."""
    reset_engine_config()
    yield
    reset_engine_config()


@pytest.fixture
def storage():
    """Fresh storage shared by the Persistent model for this test."""
    original = Persistent.storage
    Persistent.storage = MemoryStorage()
    yield Persistent.storage
    Persistent.storage = original


@pytest.fixture
def events():
    """Recorder usable as a ChangeBus listener: collects event names."""
    class Recorder(list):
        def __call__(self, event, *args):
            self.append(event)
    return Recorder()
