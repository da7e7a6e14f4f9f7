from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import NotFoundError, PartialFailure, ValidationError
from app.crud.equipment import equipment as crud_equipment
from app.models.transactions import Checkin, Checkout
from app.schemas.equipment import EquipmentCreate, EquipmentUpdate
from app.schemas.transactions import CheckinCreate, CheckoutCreate


def _checkout(*items, user_id: str = "u-1", project: str = "Film shoot") -> CheckoutCreate:
    return CheckoutCreate(
        userId=user_id,
        project=project,
        items=[{"equipmentId": eid, "name": name, "quantity": qty} for eid, name, qty in items],
    )


def _checkin(*items, user_id: str = "u-1", project: str = "Film shoot") -> CheckinCreate:
    return CheckinCreate(
        userId=user_id,
        project=project,
        items=[{"equipmentId": eid, "name": name, "quantity": qty} for eid, name, qty in items],
    )


async def _drill(ledger, quantity: int = 5):
    return await ledger.create_equipment(
        EquipmentCreate(name="Drill", location="Shelf A", quantity=quantity, available=quantity)
    )


async def test_create_unique_equipment_is_capped_at_one(ledger) -> None:
    camera = await ledger.create_equipment(
        EquipmentCreate(name="Camera", location="Cabinet", quantity=4, available=3, unique=True)
    )

    assert camera.quantity == 1
    assert camera.available == 1
    assert camera.unique is True
    assert camera.images == []


async def test_create_defaults_available_to_quantity(ledger) -> None:
    cables = await ledger.create_equipment(
        EquipmentCreate(name="XLR cable", location="Bin 3", quantity=12, assetId="UA-0042")
    )

    assert cables.available == 12
    assert cables.asset_id == "UA-0042"


async def test_create_rejects_available_above_quantity(ledger) -> None:
    with pytest.raises(ValidationError):
        await ledger.create_equipment(
            EquipmentCreate(name="Tripod", location="Shelf B", quantity=2, available=3)
        )
    assert await ledger.list_equipment() == []


async def test_update_rejects_available_above_quantity_without_mutation(ledger) -> None:
    drill = await _drill(ledger)

    with pytest.raises(ValidationError):
        await ledger.update_equipment(
            EquipmentUpdate(id=drill.id, name="Drill v2", location="Shelf Z", quantity=5, available=6)
        )

    current = await ledger.get_equipment(drill.id)
    assert current.name == "Drill"
    assert current.location == "Shelf A"
    assert current.available == 5


async def test_update_replaces_fields(ledger) -> None:
    drill = await _drill(ledger)

    updated = await ledger.update_equipment(
        EquipmentUpdate(id=drill.id, name="Hammer drill", location="Shelf C", quantity=7, available=4)
    )

    assert updated.id == drill.id
    assert updated.name == "Hammer drill"
    assert (updated.quantity, updated.available) == (7, 4)


async def test_update_unique_forces_quantity_one(ledger) -> None:
    drill = await _drill(ledger)

    updated = await ledger.update_equipment(
        EquipmentUpdate(id=drill.id, name="Drill", location="Shelf A", quantity=5, available=1, unique=True)
    )
    assert updated.quantity == 1

    with pytest.raises(ValidationError):
        await ledger.update_equipment(
            EquipmentUpdate(id=drill.id, name="Drill", location="Shelf A", quantity=5, available=2, unique=True)
        )


async def test_update_unknown_equipment_is_not_found(ledger) -> None:
    with pytest.raises(NotFoundError):
        await ledger.update_equipment(
            EquipmentUpdate(id="missing", name="Drill", location="Shelf A", quantity=1, available=1)
        )


async def test_checkout_then_checkin_restores_available(ledger, db_session) -> None:
    drill = await _drill(ledger)

    checkout = await ledger.checkout(_checkout((drill.id, "Drill", 2)))
    assert checkout.status == "active"
    assert checkout.items == [{"equipmentId": drill.id, "name": "Drill", "quantity": 2}]
    assert (await ledger.get_equipment(drill.id)).available == 3

    checkin = await ledger.checkin(_checkin((drill.id, "Drill", 2)))
    assert checkin.status == "completed"
    assert (await ledger.get_equipment(drill.id)).available == 5

    checkouts = (await db_session.execute(select(Checkout))).scalars().all()
    checkins = (await db_session.execute(select(Checkin))).scalars().all()
    assert [c.id for c in checkouts] == [checkout.id]
    assert [c.id for c in checkins] == [checkin.id]


async def test_checkout_beyond_available_is_rejected_before_any_write(ledger, db_session) -> None:
    drill = await _drill(ledger)
    saw = await ledger.create_equipment(EquipmentCreate(name="Saw", location="Wall", quantity=2))

    await ledger.checkout(_checkout((drill.id, "Drill", 3)))

    with pytest.raises(ValidationError) as exc:
        await ledger.checkout(_checkout((saw.id, "Saw", 1), (drill.id, "Drill", 3)))
    assert exc.value.details["items"][0]["equipmentId"] == drill.id

    assert (await ledger.get_equipment(drill.id)).available == 2
    assert (await ledger.get_equipment(saw.id)).available == 2
    assert len((await db_session.execute(select(Checkout))).scalars().all()) == 1


async def test_checkout_sums_repeated_items(ledger) -> None:
    drill = await _drill(ledger, quantity=3)

    with pytest.raises(ValidationError):
        await ledger.checkout(_checkout((drill.id, "Drill", 2), (drill.id, "Drill", 2)))
    assert (await ledger.get_equipment(drill.id)).available == 3


async def test_permissive_mode_allows_negative_available(ledger) -> None:
    ledger.enforce_availability = False
    drill = await _drill(ledger)

    await ledger.checkout(_checkout((drill.id, "Drill", 3)))
    assert (await ledger.get_equipment(drill.id)).available == 2

    await ledger.checkout(_checkout((drill.id, "Drill", 3)))
    assert (await ledger.get_equipment(drill.id)).available == -1


async def test_checkin_cannot_exceed_quantity(ledger) -> None:
    drill = await _drill(ledger)
    await ledger.checkout(_checkout((drill.id, "Drill", 1)))

    with pytest.raises(ValidationError):
        await ledger.checkin(_checkin((drill.id, "Drill", 2)))
    assert (await ledger.get_equipment(drill.id)).available == 4


async def test_unique_equipment_checks_out_as_a_whole(ledger) -> None:
    camera = await ledger.create_equipment(
        EquipmentCreate(name="Camera", location="Cabinet", unique=True)
    )

    await ledger.checkout(_checkout((camera.id, "Camera", 1)))
    assert (await ledger.get_equipment(camera.id)).available == 0

    with pytest.raises(ValidationError):
        await ledger.checkout(_checkout((camera.id, "Camera", 1)))


async def test_checkout_unknown_equipment_is_not_found(ledger, db_session) -> None:
    drill = await _drill(ledger)

    with pytest.raises(NotFoundError) as exc:
        await ledger.checkout(_checkout((drill.id, "Drill", 1), ("ghost", "Ghost", 1)))

    assert exc.value.details == {"equipmentIds": ["ghost"]}
    assert (await ledger.get_equipment(drill.id)).available == 5
    assert (await db_session.execute(select(Checkout))).scalars().all() == []


async def test_failure_mid_checkout_keeps_applied_items(ledger, db_session, monkeypatch) -> None:
    drill = await _drill(ledger)
    saw = await ledger.create_equipment(EquipmentCreate(name="Saw", location="Wall", quantity=2))

    original = crud_equipment.adjust_available
    calls = []

    async def flaky_adjust(db, **kwargs):
        calls.append(kwargs["equipment_id"])
        if len(calls) == 2:
            raise SQLAlchemyError("connection reset")
        return await original(db, **kwargs)

    monkeypatch.setattr(crud_equipment, "adjust_available", flaky_adjust)

    with pytest.raises(PartialFailure) as exc:
        await ledger.checkout(_checkout((drill.id, "Drill", 2), (saw.id, "Saw", 1)))

    assert exc.value.details["applied"] == [drill.id]
    assert (await ledger.get_equipment(drill.id)).available == 3
    assert (await ledger.get_equipment(saw.id)).available == 2
    assert (await db_session.execute(select(Checkout))).scalars().all() == []


async def test_guard_rejecting_later_item_reports_partial_failure(ledger, db_session, monkeypatch) -> None:
    drill = await _drill(ledger)
    saw = await ledger.create_equipment(EquipmentCreate(name="Saw", location="Wall", quantity=2))
    drill_id, saw_id = drill.id, saw.id

    original = crud_equipment.adjust_available

    async def drained_before_second(db, **kwargs):
        # 另一個請求在前置檢查後搶先借走了第二項器材
        if kwargs["equipment_id"] == saw_id:
            return False
        return await original(db, **kwargs)

    monkeypatch.setattr(crud_equipment, "adjust_available", drained_before_second)

    with pytest.raises(PartialFailure) as exc:
        await ledger.checkout(_checkout((drill_id, "Drill", 2), (saw_id, "Saw", 1)))

    assert exc.value.code == "PARTIAL_FAILURE"
    assert exc.value.details["applied"] == [drill_id]
    assert exc.value.details["reason"] == "可借數量不足"
    assert (await ledger.get_equipment(drill_id)).available == 3
    assert (await ledger.get_equipment(saw_id)).available == 2
    assert (await db_session.execute(select(Checkout))).scalars().all() == []


async def test_guard_rejecting_first_item_is_plain_validation_error(ledger, monkeypatch) -> None:
    drill = await _drill(ledger)

    async def always_drained(db, **kwargs):
        return False

    monkeypatch.setattr(crud_equipment, "adjust_available", always_drained)

    with pytest.raises(ValidationError) as exc:
        await ledger.checkout(_checkout((drill.id, "Drill", 1)))

    assert not isinstance(exc.value, PartialFailure)
