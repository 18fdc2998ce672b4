import asyncio
from unittest.mock import AsyncMock

import pytest

from camping_gate.constants.constants import EntryCondition, SelectionRole
from camping_gate.entry_control.identity import parse_verdict
from camping_gate.entry_control.selection import FamilySelection, SelectionEntry
from camping_gate.entry_control.visits import BatchResult, BatchVisitSubmitter
from camping_gate.errors import AuthExpiredError, ValidationError

from conftest import make_backend, member_payload


def family_entries():
    selection = FamilySelection.from_verdict(parse_verdict(member_payload()))
    selection.toggle(2)
    return selection.confirmed_list()


def test_lines_carry_wire_conditions():
    backend = make_backend()
    backend.create_visits_batch = AsyncMock(return_value={"success": True, "data": {"created": 2, "failed": 0}})
    submitter = BatchVisitSubmitter(backend)

    result = asyncio.run(submitter.submit(1, 100, family_entries(), "con sombrilla"))

    backend.create_visits_batch.assert_awaited_once_with(
        1,
        100,
        [
            {"persona_id": 1, "condicion_ingreso": "AFILIADO"},
            {"persona_id": 2, "condicion_ingreso": "FAMILIAR"},
        ],
        "con sombrilla",
    )
    assert result == BatchResult(created=2, failed=0)
    assert result.summary() == "2 ingreso(s) registrado(s)."


def test_partial_failure_is_reported_not_raised():
    backend = make_backend()
    backend.create_visits_batch = AsyncMock(return_value={
        "success": True,
        "data": {"created": 2, "failed": 1, "errors": [{"persona_id": 3, "error": "Familiar inactivo"}]},
    })
    entries = [
        SelectionEntry(1, "A", "1", SelectionRole.SPONSOR, EntryCondition.MEMBER, selected=True),
        SelectionEntry(2, "B", "2", SelectionRole.DEPENDENT, EntryCondition.DEPENDENT, selected=True),
        SelectionEntry(3, "C", "3", SelectionRole.DEPENDENT, EntryCondition.DEPENDENT, selected=True),
    ]

    result = asyncio.run(BatchVisitSubmitter(backend).submit(1, 100, entries))

    assert (result.created, result.failed) == (2, 1)
    assert result.partial
    assert result.errors == [{"persona_id": 3, "error": "Familiar inactivo"}]
    assert result.summary() == "2 ingreso(s) registrado(s). 1 error(es)."


def test_empty_selection_never_reaches_backend():
    backend = make_backend()
    with pytest.raises(ValidationError):
        asyncio.run(BatchVisitSubmitter(backend).submit(1, 100, []))
    backend.create_visits_batch.assert_not_awaited()


def test_off_shift_requires_policy():
    backend = make_backend()
    with pytest.raises(ValidationError):
        asyncio.run(BatchVisitSubmitter(backend).submit(1, None, family_entries()))
    backend.create_visits_batch.assert_not_awaited()

    asyncio.run(BatchVisitSubmitter(backend, allow_off_shift=True).submit(1, None, family_entries()))
    assert backend.create_visits_batch.await_args.args[1] is None


def test_auth_expired_is_not_retried():
    backend = make_backend()
    backend.create_visits_batch = AsyncMock(side_effect=AuthExpiredError("La sesión expiró."))

    with pytest.raises(AuthExpiredError):
        asyncio.run(BatchVisitSubmitter(backend).submit(1, 100, family_entries()))
    assert backend.create_visits_batch.await_count == 1


def test_missing_failed_count_is_derived():
    backend = make_backend()
    backend.create_visits_batch = AsyncMock(return_value={"created": 1})
    result = asyncio.run(BatchVisitSubmitter(backend).submit(1, 100, family_entries()))
    assert (result.created, result.failed) == (1, 1)
