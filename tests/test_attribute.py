"""
Tests for the Attribute state machine.

Tests cover:
- Construction baseline (never dirty)
- set/unset, including None routing to unset
- commit/revert per branch and the PREVIOUS branch
- Commit event names
- Validation hook
"""
import asyncio

import pytest

from modelstate import (
    Attribute,
    AttributeOwner,
    AttributeValidationError,
    BranchNotFoundError,
    DEFAULT_BRANCH,
    Model,
    PREVIOUS_BRANCH,
    kinds,
)


class RecordingOwner:
    """Collects every owner callback an attribute issues."""

    def __init__(self):
        self.changed = []
        self.committed = []
        self.recalculations = 0

    def handle(self) -> AttributeOwner:
        return AttributeOwner(
            notify_changed=self.changed.append,
            notify_committed=self.committed.append,
            request_recalculation=self._request,
        )

    def _request(self):
        self.recalculations += 1


@pytest.fixture
def owner():
    return RecordingOwner()


def make(kind, owner=None, initial=None, name='attr'):
    return kind.create(name, owner.handle() if owner else None, initial)


class TestConstruction:
    """Construction seeds the value and commits the baseline."""

    def test_default_seed_is_unset(self):
        attr = make(kinds.string(default='a'))
        assert attr.get() == 'a'
        assert attr.is_set() is False

    def test_initial_value_is_set_and_canonical(self):
        attr = make(kinds.number(), initial='42')
        assert attr.get() == 42
        assert attr.is_set() is True

    def test_default_producer_is_called(self):
        calls = []

        def produce():
            calls.append(1)
            return ['x']

        attr = make(kinds.array(default=produce))
        assert attr.get() == ['x']
        assert calls == [1]

    def test_not_changed_after_construction(self):
        """Baseline equals the constructed state."""
        for attr in (make(kinds.string(default='a')), make(kinds.number(), initial=3)):
            assert attr.is_changed() is False
            assert attr.get_last_committed() == attr.get()

    def test_construction_emits_nothing(self, owner):
        make(kinds.string(), owner, initial='x')
        assert owner.changed == []
        assert owner.committed == []
        assert owner.recalculations == 0

    def test_base_codec_is_not_implemented(self):
        """A kind without a concrete codec fails at first use."""
        from modelstate import AttributeKind, ValueCodec
        with pytest.raises(NotImplementedError):
            AttributeKind(codec=ValueCodec()).create('broken')


class TestGet:

    def test_get_rejects_arguments(self):
        attr = make(kinds.string(), initial='x')
        with pytest.raises(TypeError):
            attr.get('x')

    def test_get_returns_external_form(self):
        attr = make(kinds.array(), initial=[1, 2])
        value = attr.get()
        assert value == [1, 2]
        value.append(3)
        assert attr.get() == [1, 2]


class TestSet:

    def test_set_changes_value_and_notifies(self, owner):
        attr = make(kinds.string(default='a'), owner)
        attr.set('b')
        assert attr.get() == 'b'
        assert attr.is_set() is True
        assert owner.changed == ['attr']
        assert owner.recalculations == 1

    def test_same_value_twice_notifies_once(self, owner):
        attr = make(kinds.string(), owner)
        attr.set('x')
        attr.set('x')
        assert owner.changed == ['attr']

    def test_equal_canonical_form_is_noop(self, owner):
        attr = make(kinds.number(), owner, initial=5)
        attr.set('5')
        assert owner.changed == []

    def test_set_records_previous(self):
        attr = make(kinds.string(default='a'))
        attr.set('b')
        assert attr.previous() == 'a'
        attr.set('c')
        assert attr.previous() == 'b'

    def test_previous_is_none_before_any_change(self):
        assert make(kinds.string(default='a')).previous() is None

    def test_none_routes_to_unset(self):
        attr = make(kinds.string(default='a'), initial='b')
        attr.set(None)
        assert attr.get() == 'a'
        assert attr.is_set() is False

    def test_mutable_input_is_copied(self):
        source = {'k': 1}
        attr = make(kinds.mapping(), initial=source)
        source['k'] = 2
        assert attr.get() == {'k': 1}


class TestUnset:

    def test_unset_restores_default(self, owner):
        attr = make(kinds.string(default='a'), owner, initial='b')
        attr.unset()
        assert attr.get() == 'a'
        assert attr.is_set() is False
        assert owner.changed == ['attr']

    def test_unset_when_value_equals_default(self, owner):
        """Still ends unset even though no value change occurs."""
        attr = make(kinds.string(default='a'), owner, initial='a')
        assert attr.is_set() is True
        attr.unset()
        assert attr.is_set() is False
        assert attr.get() == 'a'
        assert owner.changed == []

    def test_unset_without_default(self):
        attr = make(kinds.string(), initial='x')
        attr.unset()
        assert attr.get() is None
        assert attr.is_set() is False

    def test_flag_cleared_before_notification(self):
        seen = []
        owner = AttributeOwner(
            notify_changed=lambda name: seen.append(attr.is_set()),
            notify_committed=lambda event: None,
            request_recalculation=lambda: seen.append(attr.is_set()),
        )
        attr = kinds.string(default='a').create('attr', owner, 'b')
        attr.unset()
        assert seen == [False, False]

    def test_listeners_and_derivations_see_unset_flag(self):
        class Flagged(Model):
            attributes = {
                'x': kinds.string(default='d'),
                'state': kinds.string(
                    calculate=lambda model, value: 'set' if model.is_set('x') else 'unset',
                ),
            }

        model = Flagged({'x': 'v'})
        assert model.get('state') == 'set'
        seen = []
        model.on('change:x', lambda event: seen.append(model.is_set('x')))
        model.unset('x')
        assert seen == [False]
        assert model.get('state') == 'unset'


class TestCommitRevert:

    def test_revert_restores_committed_value(self):
        attr = make(kinds.string(default='a'))
        attr.set('v')
        assert attr.is_changed() is True
        assert attr.revert() is True
        assert attr.get() == 'a'
        assert attr.is_changed() is False
        assert attr.previous() == 'v'

    def test_revert_restores_is_set(self):
        attr = make(kinds.string(default='a'))
        attr.set('v')
        attr.revert()
        assert attr.is_set() is False

    def test_revert_without_change_is_noop(self, owner):
        attr = make(kinds.string(default='a'), owner)
        assert attr.revert() is False
        assert owner.changed == []

    def test_commit_clears_dirty_state(self):
        attr = make(kinds.string(default='a'))
        attr.set('v')
        assert attr.commit() is True
        assert attr.is_changed() is False
        assert attr.get_last_committed() == 'v'
        attr.set('w')
        attr.revert()
        assert attr.get() == 'v'

    def test_commit_event_names(self, owner):
        attr = make(kinds.string(default='a'), owner, name='title')
        attr.set('v')
        attr.commit()
        attr.commit('draft')
        assert owner.committed == [
            f'{PREVIOUS_BRANCH}:commit:title',
            'commit:title',
            'draft:commit:title',
        ]

    def test_commit_fires_once_per_actual_change(self, owner):
        attr = make(kinds.string(default='a'), owner)
        attr.set('v')
        assert attr.commit('BRANCH') is True
        assert attr.commit('BRANCH') is False
        assert owner.committed.count('BRANCH:commit:attr') == 1

    def test_branches_are_tracked_independently(self):
        attr = make(kinds.number(), initial=1)
        attr.set(2)
        attr.commit('draft')
        attr.set(3)
        assert attr.is_changed('draft') is True
        assert attr.is_changed(DEFAULT_BRANCH) is True
        attr.revert('draft')
        assert attr.get() == 2
        assert attr.get_last_committed() == 1

    def test_unknown_branch(self):
        attr = make(kinds.string(), initial='x')
        assert attr.is_changed('nowhere') is True
        with pytest.raises(BranchNotFoundError):
            attr.revert('nowhere')
        with pytest.raises(BranchNotFoundError):
            attr.get_last_committed('nowhere')

    def test_revert_records_previous_commit_event(self, owner):
        attr = make(kinds.string(default='a'), owner)
        attr.set('v')
        owner.committed.clear()
        attr.revert()
        assert owner.committed == [f'{PREVIOUS_BRANCH}:commit:attr']


class TestValidation:

    def test_valid_without_validator(self):
        attr = make(kinds.string(), initial='x')
        assert asyncio.run(attr.validate()) is True

    def test_problem_message_becomes_error(self):
        kind = kinds.string(validator=lambda value: None if value else 'required')
        attr = make(kind, name='title')
        with pytest.raises(AttributeValidationError) as info:
            asyncio.run(attr.validate())
        assert info.value.message == 'required'
        assert info.value.attribute == 'title'
        assert info.value.code == 'invalid'

    def test_structured_problem_is_raised_as_is(self):
        error = AttributeValidationError('too long', code='length')
        kind = kinds.string(validator=lambda value: error if len(value) > 3 else None)
        attr = make(kind, initial='abcdef', name='code')
        with pytest.raises(AttributeValidationError) as info:
            asyncio.run(attr.validate())
        assert info.value is error
        assert info.value.code == 'length'
        assert info.value.attribute == 'code'


def test_to_json_equals_get():
    attr = make(kinds.array(), initial=(1, 2))
    assert attr.to_json() == [1, 2]


def test_parse_returns_canonical_form():
    attr = make(kinds.number())
    assert attr.parse('1.5') == 1.5


def test_standalone_attribute_class():
    """Attributes can be built directly from a kind without a model."""
    attr = Attribute('x', kinds.boolean(default=False))
    attr.set(1)
    assert attr.get() is True
