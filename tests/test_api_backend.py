import asyncio
from unittest.mock import MagicMock

import pytest
import requests

from camping_gate.backends.api_backend import ApiBackend
from camping_gate.constants.constants import ReasonCode
from camping_gate.entry_control.identity import IdentityResolver, LookupQuery
from camping_gate.errors import (
    AlreadyClosedError,
    AuthExpiredError,
    PeriodNotFoundError,
    ShiftConflictError,
    TransportError,
    ValidationError,
)
from camping_gate.services.api_client import ApiClient
from camping_gate.services.session import StaticTokenSession

from conftest import guest_payload, period_payload


def json_response(status, data):
    response = MagicMock()
    response.status_code = status
    response.headers = {"content-type": "application/json; charset=utf-8"}
    response.json.return_value = data
    return response


def make_api(*responses, token="tok-1", on_expired=None):
    http = MagicMock()
    http.request.side_effect = list(responses)
    session = StaticTokenSession(token, on_expired=on_expired)
    client = ApiClient("http://gate.test/api/", session, timeout=5, http=http)
    return ApiBackend(client), http, session


def test_requests_carry_bearer_token():
    api, http, _ = make_api(json_response(200, {"success": True, "data": guest_payload()}))

    payload = asyncio.run(api.resolve_by_code("abc 123/x"))

    assert payload["data"]["persona"]["id"] == 5
    method, url = http.request.call_args.args
    assert method == "GET"
    assert url == "http://gate.test/api/qr/abc%20123%2Fx"
    assert http.request.call_args.kwargs["headers"]["Authorization"] == "Bearer tok-1"
    assert http.request.call_args.kwargs["timeout"] == 5


def test_unauthorized_invalidates_session():
    expired = MagicMock()
    api, http, session = make_api(json_response(401, {"message": "Token expirado"}), on_expired=expired)

    with pytest.raises(AuthExpiredError) as excinfo:
        asyncio.run(api.get_active_period(1))

    assert excinfo.value.message == "Token expirado"
    assert session.get_token() is None
    expired.assert_called_once_with()
    assert http.request.call_count == 1


def test_connection_error_is_transport_error():
    api, _, _ = make_api(requests.ConnectionError("refused"))
    with pytest.raises(TransportError):
        asyncio.run(api.get_active_period(1))


def test_server_error_is_transport_error():
    api, _, _ = make_api(json_response(503, {"error": "mantenimiento"}))
    with pytest.raises(TransportError) as excinfo:
        asyncio.run(api.list_period_visits(100))
    assert excinfo.value.message == "mantenimiento"


def test_not_found_is_a_verdict_not_an_error():
    api, _, _ = make_api(json_response(404, {"success": False, "message": "Persona no encontrada"}))

    verdict = asyncio.run(IdentityResolver(api).resolve(LookupQuery.national_id("99999999")))

    assert verdict.found is False
    assert verdict.reason_code == ReasonCode.PERSON_NOT_FOUND


@pytest.mark.parametrize("status, message", [
    (409, "Conflicto"),
    (400, "Ya existe un período de caja abierto"),
])
def test_open_conflict(status, message):
    api, _, _ = make_api(json_response(status, {"message": message, "periodo": period_payload(55)}))

    with pytest.raises(ShiftConflictError) as excinfo:
        asyncio.run(api.open_period(1, None))

    assert excinfo.value.existing["id"] == 55


def test_open_other_bad_request_is_validation_error():
    api, _, _ = make_api(json_response(400, {"message": "camping_id es requerido"}))
    with pytest.raises(ValidationError):
        asyncio.run(api.open_period(1, None))


def test_close_status_mapping():
    api, _, _ = make_api(
        json_response(409, {"message": "Conflicto"}),
        json_response(400, {"message": "El período ya está cerrado"}),
        json_response(404, {"message": "No encontrado"}),
    )
    with pytest.raises(AlreadyClosedError):
        asyncio.run(api.close_period(100, None))
    with pytest.raises(AlreadyClosedError):
        asyncio.run(api.close_period(100, None))
    with pytest.raises(PeriodNotFoundError):
        asyncio.run(api.close_period(100, None))


def test_batch_body_shape():
    api, http, _ = make_api(json_response(201, {"success": True, "data": {"created": 1, "failed": 0}}))
    lines = [{"persona_id": 5, "condicion_ingreso": "INVITADO"}]

    asyncio.run(api.create_visits_batch(1, 100, lines, "con reposera"))

    method, url = http.request.call_args.args
    assert (method, url) == ("POST", "http://gate.test/api/visitas/batch")
    assert http.request.call_args.kwargs["json"] == {
        "camping_id": 1,
        "periodo_caja_id": 100,
        "personas": lines,
        "observaciones": "con reposera",
    }


def test_history_query_params():
    api, http, _ = make_api(json_response(200, {"success": True, "periodos": []}))
    asyncio.run(api.period_history(1, 5))
    assert http.request.call_args.kwargs["params"] == {"camping_id": 1, "limite": 5}
