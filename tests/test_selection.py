from camping_gate.constants.constants import EntryCondition, SelectionRole
from camping_gate.entry_control.identity import parse_verdict
from camping_gate.entry_control.selection import FamilySelection

from conftest import guest_payload, member_payload, not_found_payload


def test_member_verdict_seeds_sponsor_and_dependents():
    selection = FamilySelection.from_verdict(parse_verdict(member_payload()))
    sponsor, dep_a, dep_b = selection.entries

    assert (sponsor.person_id, sponsor.role, sponsor.selected, sponsor.toggleable) == (
        1, SelectionRole.SPONSOR, True, False)
    assert (dep_a.person_id, dep_a.role, dep_a.selected, dep_a.toggleable) == (
        2, SelectionRole.DEPENDENT, False, True)
    assert (dep_b.person_id, dep_b.selected, dep_b.blocked, dep_b.toggleable) == (3, False, True, False)


def test_sponsor_cannot_be_deselected():
    selection = FamilySelection.from_verdict(parse_verdict(member_payload()))
    assert selection.toggle(1) is True
    assert [entry.person_id for entry in selection.confirmed_list()] == [1]


def test_toggle_dependent_and_blocked_dependent():
    selection = FamilySelection.from_verdict(parse_verdict(member_payload()))
    assert selection.toggle(2) is True
    assert selection.toggle(3) is False
    assert [entry.person_id for entry in selection.confirmed_list()] == [1, 2]
    assert selection.toggle(2) is False
    assert [entry.person_id for entry in selection.confirmed_list()] == [1]


def test_toggle_unknown_person_is_noop():
    selection = FamilySelection.from_verdict(parse_verdict(member_payload()))
    assert selection.toggle(999) is False
    assert len(selection.entries) == 3


def test_sole_match_is_locked():
    selection = FamilySelection.from_verdict(parse_verdict(guest_payload()))
    (entry,) = selection.entries
    assert entry.selected and entry.locked
    assert entry.condition is EntryCondition.GUEST
    selection.toggle(entry.person_id)
    assert selection.confirmed_list() == [entry]


def test_dependent_sole_match_role():
    verdict = parse_verdict({
        "persona": {"id": 2, "dni": "45000001", "nombre_completo": "García Luis"},
        "tipos": ["FAMILIAR"],
        "allowed": True,
        "reason": "FAMILIAR_VALIDO",
        "familiares": [{"id": 20, "afiliado_id": 10, "activo": True, "baja": False}],
    })
    (entry,) = FamilySelection.from_verdict(verdict).entries
    assert entry.role is SelectionRole.DEPENDENT
    assert entry.condition is EntryCondition.DEPENDENT


def test_denied_or_missing_person_gives_empty_selection():
    assert FamilySelection.from_verdict(parse_verdict(not_found_payload())).is_empty
    assert FamilySelection.from_verdict(parse_verdict(member_payload("SUSPENDIDO"))).is_empty


def test_clear():
    selection = FamilySelection.from_verdict(parse_verdict(member_payload()))
    selection.clear()
    assert selection.is_empty
    assert selection.confirmed_list() == []
