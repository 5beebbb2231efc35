"""
Component Tests for A/B Test Engine

Tests validation on create and the draft -> running <-> paused ->
completed lifecycle.
"""

import pytest

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.dynamic_qr_service.ab_test_engine import ABTestEngine
from microservices.dynamic_qr_service.protocols import (
    BusinessLogicError,
    NotFoundError,
    ValidationError,
)
from tests.contracts.dynamic_qr.data_contract import (
    ABTestCreateRequest,
    ABTestStatus,
    ABTestUpdateRequest,
    Variant,
)


@pytest.fixture
def versions(repository, factory, code_id):
    """Two versions of the code, stored synchronously"""
    v1 = factory.make_content_version(code_id, 1, redirect_url="https://a.example")
    v2 = factory.make_content_version(code_id, 2, redirect_url="https://b.example")
    repository.versions[v1.id] = v1
    repository.versions[v2.id] = v2
    return v1, v2


class TestCreateABTest:
    """Tests for ABTestEngine.create"""

    @pytest.mark.asyncio
    async def test_create_draft_with_default_split(self, ab_test_engine, factory, versions, code_id):
        v1, v2 = versions

        test = await ab_test_engine.create(code_id, factory.make_ab_test_create_request(v1.id, v2.id))

        assert test.status == ABTestStatus.DRAFT
        assert test.traffic_split == 50
        assert test.id.startswith("abt_")

    @pytest.mark.asyncio
    async def test_explicit_zero_split_kept(self, ab_test_engine, factory, versions, code_id):
        v1, v2 = versions
        test = await ab_test_engine.create(
            code_id, factory.make_ab_test_create_request(v1.id, v2.id, traffic_split=0)
        )
        assert test.traffic_split == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("traffic_split", [-1, 101])
    async def test_split_out_of_range(self, ab_test_engine, factory, versions, code_id, traffic_split):
        v1, v2 = versions
        with pytest.raises(ValidationError):
            await ab_test_engine.create(
                code_id, factory.make_ab_test_create_request(v1.id, v2.id, traffic_split=traffic_split)
            )

    @pytest.mark.asyncio
    async def test_name_required(self, ab_test_engine, versions, code_id):
        v1, v2 = versions
        with pytest.raises(ValidationError):
            await ab_test_engine.create(
                code_id,
                ABTestCreateRequest(test_name="  ", variant_a_version_id=v1.id, variant_b_version_id=v2.id),
            )

    @pytest.mark.asyncio
    async def test_variants_must_differ(self, ab_test_engine, factory, versions, code_id):
        v1, _ = versions
        with pytest.raises(ValidationError):
            await ab_test_engine.create(code_id, factory.make_ab_test_create_request(v1.id, v1.id))

    @pytest.mark.asyncio
    async def test_variants_must_exist(self, ab_test_engine, factory, versions, code_id):
        v1, _ = versions
        with pytest.raises(ValidationError):
            await ab_test_engine.create(code_id, factory.make_ab_test_create_request(v1.id, "ver_missing"))

    @pytest.mark.asyncio
    async def test_variants_must_belong_to_code(self, ab_test_engine, repository, factory, versions, code_id):
        v1, _ = versions
        foreign = factory.make_content_version(factory.make_code_id())
        repository.versions[foreign.id] = foreign

        with pytest.raises(ValidationError):
            await ab_test_engine.create(code_id, factory.make_ab_test_create_request(v1.id, foreign.id))


class TestABTestLifecycle:
    """Tests for start, pause, resume, complete and delete"""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, ab_test_engine, factory, versions, code_id, event_bus):
        v1, v2 = versions
        test = await ab_test_engine.create(code_id, factory.make_ab_test_create_request(v1.id, v2.id))

        started = await ab_test_engine.start(test.id)
        assert started.status == ABTestStatus.RUNNING
        assert started.start_date is not None

        paused = await ab_test_engine.pause(test.id)
        assert paused.status == ABTestStatus.PAUSED

        resumed = await ab_test_engine.resume(test.id)
        assert resumed.status == ABTestStatus.RUNNING

        completed = await ab_test_engine.complete(test.id, "B")
        assert completed.status == ABTestStatus.COMPLETED
        assert completed.winner_variant == Variant.B
        assert completed.end_date is not None

        types = [e["event_type"] for e in event_bus.published_events]
        assert types == [
            "dynamic_qr.ab_test.started",
            "dynamic_qr.ab_test.paused",
            "dynamic_qr.ab_test.resumed",
            "dynamic_qr.ab_test.completed",
        ]

    @pytest.mark.asyncio
    async def test_start_only_from_draft(self, ab_test_engine, factory, versions, code_id):
        v1, v2 = versions
        test = await ab_test_engine.create(code_id, factory.make_ab_test_create_request(v1.id, v2.id))
        await ab_test_engine.start(test.id)

        with pytest.raises(BusinessLogicError):
            await ab_test_engine.start(test.id)

    @pytest.mark.asyncio
    async def test_resume_only_from_paused(self, ab_test_engine, factory, versions, code_id):
        v1, v2 = versions
        test = await ab_test_engine.create(code_id, factory.make_ab_test_create_request(v1.id, v2.id))

        with pytest.raises(BusinessLogicError):
            await ab_test_engine.resume(test.id)

    @pytest.mark.asyncio
    async def test_invalid_winner(self, ab_test_engine, factory, versions, code_id):
        v1, v2 = versions
        test = await ab_test_engine.create(code_id, factory.make_ab_test_create_request(v1.id, v2.id))

        with pytest.raises(ValidationError):
            await ab_test_engine.complete(test.id, "C")

    @pytest.mark.asyncio
    async def test_split_frozen_while_running(self, ab_test_engine, factory, versions, code_id):
        v1, v2 = versions
        test = await ab_test_engine.create(
            code_id, factory.make_ab_test_create_request(v1.id, v2.id, traffic_split=70)
        )
        await ab_test_engine.start(test.id)

        with pytest.raises(BusinessLogicError):
            await ab_test_engine.update(test.id, ABTestUpdateRequest(traffic_split=30))

        # Other fields stay editable
        updated = await ab_test_engine.update(test.id, ABTestUpdateRequest(description="Hero copy"))
        assert updated.description == "Hero copy"
        assert updated.traffic_split == 70

    @pytest.mark.asyncio
    async def test_split_editable_in_draft(self, ab_test_engine, factory, versions, code_id):
        v1, v2 = versions
        test = await ab_test_engine.create(code_id, factory.make_ab_test_create_request(v1.id, v2.id))

        updated = await ab_test_engine.update(test.id, ABTestUpdateRequest(traffic_split=20))

        assert updated.traffic_split == 20

    @pytest.mark.asyncio
    async def test_delete_running_blocked(self, ab_test_engine, factory, versions, code_id):
        v1, v2 = versions
        test = await ab_test_engine.create(code_id, factory.make_ab_test_create_request(v1.id, v2.id))
        await ab_test_engine.start(test.id)

        with pytest.raises(BusinessLogicError):
            await ab_test_engine.delete(test.id)

        await ab_test_engine.pause(test.id)
        assert await ab_test_engine.delete(test.id) is True
        with pytest.raises(NotFoundError):
            await ab_test_engine.get(test.id)


class TestRunningTestSelection:
    """Tests for find_running and the single-running option"""

    @pytest.mark.asyncio
    async def test_first_running_in_creation_order(self, ab_test_engine, factory, versions, code_id):
        v1, v2 = versions
        first = await ab_test_engine.create(code_id, factory.make_ab_test_create_request(v1.id, v2.id))
        second = await ab_test_engine.create(code_id, factory.make_ab_test_create_request(v2.id, v1.id))
        await ab_test_engine.start(second.id)
        await ab_test_engine.start(first.id)

        running = await ab_test_engine.find_running(code_id)

        assert running.id == first.id

    @pytest.mark.asyncio
    async def test_none_running(self, ab_test_engine, code_id):
        assert await ab_test_engine.find_running(code_id) is None

    @pytest.mark.asyncio
    async def test_enforce_single_running(self, repository, factory, versions, code_id):
        engine = ABTestEngine(repository, enforce_single_running_test=True)
        v1, v2 = versions
        first = await engine.create(code_id, factory.make_ab_test_create_request(v1.id, v2.id))
        second = await engine.create(code_id, factory.make_ab_test_create_request(v2.id, v1.id))
        await engine.start(first.id)

        with pytest.raises(BusinessLogicError):
            await engine.start(second.id)
