from __future__ import annotations

import asyncio
from datetime import date

import httpx
import pytest

from conftest import FakeStore, make_plan, make_template
from gymplan.core.clock import FixedClock
from gymplan.core.errors import OverlapError, ValidationError
from gymplan.db.models import Customer, PlanStatus, RenewalPriority
from gymplan.drive.client import DriveClient
from gymplan.drive.validator import LinkValidator
from gymplan.scheduling.service import PlanService, count_by_status

TODAY = date(2024, 5, 15)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(TODAY)


@pytest.fixture
def service(store, clock) -> PlanService:
    return PlanService(store, clock=clock)


@pytest.mark.asyncio
async def test_save_plan_creates_and_normalizes_name(service, store):
    plan_id = await service.save_plan(make_plan(None, date(2024, 6, 1), date(2024, 6, 29), name="  June  "))

    assert store.plans[plan_id].name == "June"
    assert store.plans[plan_id].customer_id == 1


@pytest.mark.asyncio
async def test_overlapping_plan_is_rejected(service, store):
    store.add(make_plan(1, date(2024, 1, 1), date(2024, 1, 31)))

    with pytest.raises(OverlapError) as excinfo:
        await service.save_plan(make_plan(None, date(2024, 1, 31), date(2024, 2, 28)))

    assert excinfo.value.conflict_ids == [1]
    assert len(store.plans) == 1


@pytest.mark.asyncio
async def test_adjacent_plan_is_accepted(service, store):
    store.add(make_plan(1, date(2024, 1, 1), date(2024, 1, 31)))
    plan_id = await service.save_plan(make_plan(None, date(2024, 2, 1), date(2024, 2, 28)))
    assert plan_id in store.plans


@pytest.mark.asyncio
async def test_supersede_archives_conflicts(service, store):
    store.add(make_plan(1, date(2024, 1, 1), None))
    store.add(make_plan(2, date(2023, 1, 1), date(2023, 3, 1)))

    plan_id = await service.save_plan(
        make_plan(None, date(2024, 3, 1), date(2024, 3, 28)), supersede=True
    )

    assert store.plans[1].active is False
    assert store.plans[2].active is True
    assert store.plans[plan_id].active is True


@pytest.mark.asyncio
async def test_archived_plan_is_saved_despite_overlap(service, store):
    store.add(make_plan(1, date(2024, 1, 1), None))
    plan_id = await service.save_plan(make_plan(None, date(2024, 1, 10), date(2024, 1, 20), active=False))
    assert store.plans[1].active is True
    assert store.plans[plan_id].active is False


@pytest.mark.asyncio
async def test_editing_a_plan_does_not_conflict_with_itself(service, store):
    stored = store.add(make_plan(1, date(2024, 1, 1), date(2024, 1, 31)))
    edited = stored.model_copy(update={"end_date": date(2024, 2, 15)})

    assert await service.save_plan(edited) == 1
    assert store.plans[1].end_date == date(2024, 2, 15)


@pytest.mark.asyncio
async def test_concurrent_overlapping_saves_only_one_wins(service, store):
    results = await asyncio.gather(
        service.save_plan(make_plan(None, date(2024, 6, 1), date(2024, 6, 30), name="A")),
        service.save_plan(make_plan(None, date(2024, 6, 15), date(2024, 7, 15), name="B")),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, OverlapError)]
    saved = [r for r in results if isinstance(r, int)]
    assert len(errors) == 1
    assert len(saved) == 1
    assert len(store.plans) == 1


@pytest.mark.asyncio
async def test_different_customers_do_not_collide(service, store):
    await asyncio.gather(
        service.save_plan(make_plan(None, date(2024, 6, 1), date(2024, 6, 30), customer_id=1)),
        service.save_plan(make_plan(None, date(2024, 6, 1), date(2024, 6, 30), customer_id=2)),
    )
    assert len(store.plans) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "plan",
    [
        make_plan(None, date(2024, 2, 1), date(2024, 1, 1)),
        make_plan(None, date(2024, 2, 1), None, name=" "),
        make_plan(None, None, date(2024, 2, 1)),
        make_plan(None, date(2024, 2, 1), None, customer_id=None),
    ],
)
async def test_invalid_plans_are_rejected(service, store, plan):
    with pytest.raises(ValidationError):
        await service.save_plan(plan)
    assert store.plans == {}


@pytest.mark.asyncio
async def test_save_template_detaches_customer(service, store):
    template_id = await service.save_template(make_plan(None, None, None, customer_id=5, name="Base 3d"))

    assert store.plans[template_id].is_template is True
    assert store.plans[template_id].customer_id is None


@pytest.mark.asyncio
async def test_list_plans_reports_status_for_today(service, store, clock):
    store.add(make_plan(1, date(2024, 4, 1), date(2024, 4, 30)))
    store.add(make_plan(2, date(2024, 5, 1), date(2024, 5, 31)))
    store.add(make_plan(3, date(2024, 6, 1), None))
    store.add(make_plan(4, date(2024, 5, 1), None, active=False))
    store.add(make_template(9, 3))

    views = await service.list_plans(1)
    statuses = {v.plan.id: v.status for v in views}
    assert statuses == {
        1: PlanStatus.EXPIRED,
        2: PlanStatus.ACTIVE,
        3: PlanStatus.FUTURE,
        4: PlanStatus.ARCHIVED,
    }
    assert count_by_status(views) == {
        PlanStatus.FUTURE: 1,
        PlanStatus.ACTIVE: 1,
        PlanStatus.EXPIRED: 1,
        PlanStatus.ARCHIVED: 1,
    }

    clock.set(date(2024, 6, 1))
    statuses = {v.plan.id: v.status for v in await service.list_plans(1)}
    assert statuses[2] == PlanStatus.EXPIRED
    assert statuses[3] == PlanStatus.ACTIVE


@pytest.mark.asyncio
async def test_suggest_start_date(service, store):
    assert await service.suggest_start_date(1) == TODAY

    store.add(make_plan(1, date(2024, 5, 1), date(2024, 5, 31)))
    assert await service.suggest_start_date(1) == date(2024, 6, 1)

    store.add(make_plan(2, date(2024, 1, 1), date(2024, 1, 31), customer_id=2))
    assert await service.suggest_start_date(2) == TODAY


@pytest.mark.asyncio
async def test_draft_from_template(service, store):
    store.add(make_template(9, 3, name="Full body"))
    store.add(make_plan(1, date(2024, 5, 1), None))

    draft = await service.draft_from_template(9)
    assert draft.days_per_week == 3
    assert draft.source_template_name == "Full body"

    with pytest.raises(ValidationError):
        await service.draft_from_template(1)
    with pytest.raises(ValidationError):
        await service.draft_from_template(404)


@pytest.mark.asyncio
async def test_training_priorities(service, store):
    store.customers = {
        1: Customer(id=1, first_name="Ana"),
        2: Customer(id=2, first_name="Ben"),
    }
    store.add(make_plan(1, date(2024, 5, 1), date(2024, 5, 20), customer_id=1))

    rows = await service.training_priorities()

    assert [(r.customer.id, r.priority) for r in rows] == [
        (2, RenewalPriority.NONE),
        (1, RenewalPriority.URGENT),
    ]


@pytest.mark.asyncio
async def test_listing_heals_stale_links_in_background(store, clock):
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(404)

    drive = DriveClient(transport=httpx.MockTransport(handler))
    service = PlanService(store, clock=clock, link_validator=LinkValidator(drive, store))
    store.add(make_plan(1, date(2024, 5, 1), None, drive_link="https://drive.google.com/file/d/x1/view"))

    views = await service.list_plans(1)
    # The listing does not wait for Drive
    assert views[0].plan.drive_link is not None

    release.set()
    for _ in range(50):
        if store.link_updates:
            break
        await asyncio.sleep(0.01)

    views = await service.list_plans(1)
    assert views[0].plan.drive_link is None
    assert store.link_updates == [(1, None)]
    await service.cancel_background()
    await drive.close()


@pytest.mark.asyncio
async def test_cancel_background_abandons_pending_checks(store, clock):
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.Event().wait()
        return httpx.Response(404)

    drive = DriveClient(transport=httpx.MockTransport(handler))
    service = PlanService(store, clock=clock, link_validator=LinkValidator(drive, store))
    store.add(make_plan(1, date(2024, 5, 1), None, drive_link="https://drive.google.com/file/d/x1/view"))

    await service.list_plans(1)
    await asyncio.sleep(0)
    await service.cancel_background()

    assert store.plans[1].drive_link is not None
    assert store.link_updates == []
    await drive.close()


class BrokenWriteStore(FakeStore):
    async def create_plan(self, plan):
        raise RuntimeError("insert failed")


@pytest.mark.asyncio
async def test_failed_supersede_restores_archived_plans(clock):
    store = BrokenWriteStore()
    store.add(make_plan(1, date(2024, 1, 1), date(2024, 1, 31)))
    service = PlanService(store, clock=clock)

    with pytest.raises(RuntimeError):
        await service.save_plan(make_plan(None, date(2024, 1, 15), date(2024, 2, 15)), supersede=True)

    assert store.plans[1].active is True
    assert list(store.plans) == [1]


@pytest.mark.asyncio
async def test_template_dates_are_not_validated(service, store):
    template = make_plan(None, date(2024, 2, 1), date(2024, 1, 1), is_template=True, name="Base")
    template_id = await service.save_plan(template)
    assert store.plans[template_id].is_template is True


@pytest.mark.asyncio
async def test_link_attached_during_check_survives(store, clock):
    release = asyncio.Event()
    old_link = "https://drive.google.com/file/d/OLD/view"
    new_link = "https://drive.google.com/file/d/NEW/view"

    async def handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(404)

    drive = DriveClient(transport=httpx.MockTransport(handler))
    service = PlanService(store, clock=clock, link_validator=LinkValidator(drive, store))
    store.add(make_plan(1, date(2024, 5, 1), None, drive_link=old_link))

    await service.list_plans(1)
    await asyncio.sleep(0.01)
    await service.attach_link(1, new_link)
    release.set()
    for _ in range(20):
        if not service._background:
            break
        await asyncio.sleep(0.01)

    assert store.plans[1].drive_link == new_link
    assert store.link_updates == [(1, new_link)]
    await service.cancel_background()
    await drive.close()
