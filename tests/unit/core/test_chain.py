"""Tests for approval chain templates."""

import uuid

import pytest

from coursehub.core.approval.chain import (
    IMPLICIT_STEP_NAMESPACE,
    get_chain,
    implicit_chain,
    validate_chain,
)
from coursehub.core.errors import ChainMisconfigured

from tests.factories import chain_step


class TestValidateChain:
    """Test chain validation rules."""

    def test_valid_chain_is_sorted(self):
        role_id = uuid.uuid4()
        steps = [
            chain_step(2, role_id=role_id, final=True),
            chain_step(1, head=True),
        ]
        ordered = validate_chain(steps)
        assert [s.order for s in ordered] == [1, 2]
        assert ordered[0].is_head_approval

    def test_single_head_final_step(self):
        ordered = validate_chain([chain_step(1, head=True, final=True)])
        assert len(ordered) == 1

    def test_empty_chain(self):
        with pytest.raises(ChainMisconfigured):
            validate_chain([])

    def test_no_final_step(self):
        with pytest.raises(ChainMisconfigured, match="exactly one final"):
            validate_chain([chain_step(1, head=True), chain_step(2, role_id=uuid.uuid4())])

    def test_two_final_steps(self):
        with pytest.raises(ChainMisconfigured, match="exactly one final"):
            validate_chain([
                chain_step(1, head=True, final=True),
                chain_step(2, role_id=uuid.uuid4(), final=True),
            ])

    def test_two_head_steps(self):
        with pytest.raises(ChainMisconfigured, match="head"):
            validate_chain([chain_step(1, head=True), chain_step(2, head=True, final=True)])

    def test_gap_in_orders(self):
        with pytest.raises(ChainMisconfigured, match="contiguous"):
            validate_chain([chain_step(1, head=True), chain_step(3, role_id=uuid.uuid4(), final=True)])

    def test_duplicate_orders(self):
        with pytest.raises(ChainMisconfigured, match="contiguous"):
            validate_chain([
                chain_step(1, head=True),
                chain_step(1, role_id=uuid.uuid4(), final=True),
            ])

    def test_role_step_without_role(self):
        with pytest.raises(ChainMisconfigured, match="Role must be specified"):
            validate_chain([chain_step(1, head=True), chain_step(2, final=True)])

    def test_head_step_with_role(self):
        with pytest.raises(ChainMisconfigured, match="must not reference a role"):
            validate_chain([chain_step(1, head=True, final=True, role_id=uuid.uuid4())])

    def test_unknown_role(self):
        known = {uuid.uuid4()}
        with pytest.raises(ChainMisconfigured, match="unknown role"):
            validate_chain([chain_step(1, role_id=uuid.uuid4(), final=True)], known_role_ids=known)

    def test_known_role(self):
        role_id = uuid.uuid4()
        validate_chain([chain_step(1, role_id=role_id, final=True)], known_role_ids={role_id})

    def test_error_carries_category(self):
        category_id = uuid.uuid4()
        with pytest.raises(ChainMisconfigured) as exc_info:
            validate_chain([], category_id=category_id)
        assert exc_info.value.category_id == category_id
        assert exc_info.value.recoverable is False


class TestGetChain:
    """Test chain lookup and auto-approving categories."""

    def test_returns_loaded_steps_in_order(self):
        category_id = uuid.uuid4()
        steps = [
            chain_step(2, category_id=category_id, role_id=uuid.uuid4(), final=True),
            chain_step(1, category_id=category_id, head=True),
        ]
        chain = get_chain(category_id, lambda _: steps)
        assert [s.order for s in chain] == [1, 2]
        assert not any(s.is_implicit for s in chain)

    def test_empty_category_is_auto_approving(self):
        category_id = uuid.uuid4()
        chain = get_chain(category_id, lambda _: [])

        assert len(chain) == 1
        assert chain[0].is_final
        assert chain[0].is_implicit
        assert not chain[0].is_head_approval
        assert chain[0].role_id is None

    def test_implicit_step_id_is_deterministic(self):
        category_id = uuid.uuid4()
        assert implicit_chain(category_id)[0].id == implicit_chain(category_id)[0].id
        assert implicit_chain(category_id)[0].id == uuid.uuid5(IMPLICIT_STEP_NAMESPACE, str(category_id))

    def test_implicit_chain_is_valid(self):
        validate_chain(implicit_chain(uuid.uuid4()), known_role_ids=set())
