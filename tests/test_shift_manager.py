import asyncio
from unittest.mock import AsyncMock

import pytest

from camping_gate.entry_control.shift import ShiftPeriod, ShiftPeriodManager
from camping_gate.errors import AlreadyClosedError, ShiftConflictError

from conftest import make_backend, period_payload


def test_get_active_none():
    manager = ShiftPeriodManager(make_backend())
    assert asyncio.run(manager.get_active(1)) is None


def test_get_active_parses_period():
    backend = make_backend()
    backend.get_active_period = AsyncMock(return_value={"success": True, "periodo": period_payload(visits=4)})
    period = asyncio.run(ShiftPeriodManager(backend).get_active(1))
    assert period.id == 100
    assert period.is_open
    assert period.visit_count == 4
    assert period.opened_at.hour == 8


def test_conflict_surfaces_existing_period_from_error():
    backend = make_backend()
    backend.open_period = AsyncMock(
        side_effect=ShiftConflictError("Ya existe", existing=period_payload(period_id=55))
    )
    with pytest.raises(ShiftConflictError) as excinfo:
        asyncio.run(ShiftPeriodManager(backend).open(1))
    assert isinstance(excinfo.value.existing, ShiftPeriod)
    assert excinfo.value.existing.id == 55


def test_conflict_without_details_reads_active_period():
    backend = make_backend()
    backend.open_period = AsyncMock(side_effect=ShiftConflictError("Ya existe"))
    backend.get_active_period = AsyncMock(return_value={"success": True, "periodo": period_payload(period_id=56)})
    with pytest.raises(ShiftConflictError) as excinfo:
        asyncio.run(ShiftPeriodManager(backend).open(1))
    assert excinfo.value.existing.id == 56


def test_close_propagates_already_closed():
    backend = make_backend()
    backend.close_period = AsyncMock(side_effect=AlreadyClosedError("ya está cerrado"))
    with pytest.raises(AlreadyClosedError):
        asyncio.run(ShiftPeriodManager(backend).close(100))


def test_record_visits_is_optimistic_copy():
    period = ShiftPeriod.from_payload(period_payload(visits=3))
    updated = ShiftPeriodManager.record_visits(period, 2)
    assert updated.visit_count == 5
    assert period.visit_count == 3


def test_list_visits_and_history():
    backend = make_backend()
    backend.list_period_visits = AsyncMock(return_value={"success": True, "data": [{
        "id": 1,
        "persona_id": 2,
        "fecha_ingreso": "2024-01-15T09:30:00",
        "condicion_ingreso": "FAMILIAR",
        "persona": {"id": 2, "dni": "45000001", "apellido": "García", "nombres": "Luis"},
    }]})
    backend.period_history = AsyncMock(return_value={
        "success": True, "periodos": [period_payload(101, closed=True), period_payload(100, closed=True)],
    })
    manager = ShiftPeriodManager(backend)

    (visit,) = asyncio.run(manager.list_visits(100))
    history = asyncio.run(manager.history(1, limit=2))

    assert visit.display_name == "García Luis"
    assert visit.condition_label == "Familiar"
    assert [period.id for period in history] == [101, 100]
    assert not history[0].is_open
    backend.period_history.assert_awaited_once_with(1, 2)
