"""Tests for model-level operations."""
import asyncio

import pytest

from conftest import Simple
from modelstate import (
    AttributeValidationError,
    Model,
    ModelValidationError,
    UnknownAttributeError,
    engine_config,
    kinds,
)


class Profile(Model):
    attributes = {
        'name': kinds.string(default=''),
        'age': kinds.number(validator=lambda value: 'must be positive' if value is not None and value < 0 else None),
        'tags': kinds.array(default=list),
        'active': kinds.boolean(default=True),
    }


class TestAccess:

    def test_get_and_set(self):
        profile = Profile()
        profile.set('name', 'ada')
        assert profile.get('name') == 'ada'
        assert profile.is_set('name') is True
        assert profile.is_set('age') is False

    def test_set_mapping(self):
        profile = Profile()
        profile.set({'name': 'ada', 'age': '36'})
        assert profile.to_json() == {'name': 'ada', 'age': 36, 'tags': [], 'active': True}

    def test_unknown_attribute(self):
        with pytest.raises(UnknownAttributeError):
            Profile().get('missing')
        with pytest.raises(UnknownAttributeError):
            Profile({'missing': 1})
        with pytest.raises(KeyError):
            Profile().set('missing', 1)

    def test_unknown_attribute_ignored_when_not_strict(self):
        with engine_config(strict_attributes=False):
            profile = Profile({'name': 'ada', 'extra': 1})
            profile.set({'extra': 2})
        assert profile.to_json()['name'] == 'ada'
        assert 'extra' not in profile

    def test_unset_and_previous(self):
        profile = Profile({'name': 'ada'})
        profile.set('name', 'grace')
        assert profile.previous('name') == 'ada'
        profile.unset('name')
        assert profile.get('name') == ''
        assert profile.is_set('name') is False


class TestBranches:

    def test_fresh_model_is_not_changed(self):
        assert Profile().is_changed() is False

    def test_commit_and_revert(self):
        profile = Profile()
        profile.set('name', 'ada')
        assert profile.is_changed() is True
        assert profile.commit() is True
        assert profile.is_changed() is False
        profile.set('name', 'grace')
        assert profile.revert() is True
        assert profile.get('name') == 'ada'
        assert profile.get_last_committed('name') == 'ada'

    def test_commit_events(self, events):
        profile = Profile()
        profile.on('commit', events)
        profile.on('commit:name', events)
        profile.on('draft:commit', events)
        profile.set('name', 'ada')
        profile.commit()
        profile.commit()
        profile.commit('draft')
        assert events == ['commit:name', 'commit', 'draft:commit']

    def test_commit_branch_fires_once(self, events):
        profile = Profile()
        profile.on('BRANCH:commit:name', events)
        profile.set('name', 'x')
        profile.commit('BRANCH')
        profile.commit('BRANCH')
        assert events == ['BRANCH:commit:name']

    def test_revert_recalculates(self):
        model = Simple()
        model.set('a', 'q')
        model.revert()
        assert model.get('a') == 'a'
        assert model.get('b') == 'ax'


class TestValidation:

    def test_valid_model(self):
        assert asyncio.run(Profile({'age': 3}).validate()) is True

    def test_invalid_attribute_collected(self):
        with pytest.raises(ModelValidationError) as info:
            asyncio.run(Profile({'age': -1}).validate())
        error = info.value.errors['age']
        assert isinstance(error, AttributeValidationError)
        assert error.message == 'must be positive'
        assert info.value.code == 'invalid_model'


class TestLifecycle:

    def test_destruct_clears_listeners(self, events):
        profile = Profile()
        profile.on('change:name', events)
        profile.destruct()
        assert profile.destructed is True
        profile.set('name', 'x')
        assert events == []

    def test_repr_shows_values(self):
        assert "'name': 'ada'" in repr(Profile({'name': 'ada'}))
