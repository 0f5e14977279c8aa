from unittest.mock import MagicMock, patch

import requests

from medly.services.cep import lookup_cep


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def test_invalid_cep_skips_request():
    with patch("medly.services.cep.requests.get") as get:
        assert lookup_cep("0131") == {"status": "ERROR", "error": "INVALID_CEP"}
    get.assert_not_called()


def test_lookup_maps_viacep_fields():
    payload = {
        "cep": "01310-100",
        "logradouro": "Avenida Paulista",
        "complemento": "de 612 a 1510 - lado par",
        "bairro": "Bela Vista",
        "localidade": "São Paulo",
        "uf": "SP",
    }
    with patch("medly.services.cep.requests.get", return_value=_response(payload=payload)) as get:
        result = lookup_cep("01310-100")
    assert get.call_args[0][0].endswith("/01310100/json/")
    assert result["status"] == "OK"
    assert result["address"] == {
        "cep": "01310-100",
        "street": "Avenida Paulista",
        "complement": "de 612 a 1510 - lado par",
        "neighborhood": "Bela Vista",
        "city": "São Paulo",
        "state": "SP",
    }


def test_unknown_cep():
    with patch("medly.services.cep.requests.get", return_value=_response(payload={"erro": True})):
        assert lookup_cep("99999999")["error"] == "NOT_FOUND"


def test_request_failure():
    with patch("medly.services.cep.requests.get", side_effect=requests.ConnectionError("offline")):
        assert lookup_cep("01310100")["error"] == "REQUEST_FAILED"


def test_bad_status_and_payload():
    with patch("medly.services.cep.requests.get", return_value=_response(status_code=500)):
        assert lookup_cep("01310100")["error"] == "BAD_STATUS"

    broken = _response()
    broken.json.side_effect = ValueError("not json")
    with patch("medly.services.cep.requests.get", return_value=broken):
        assert lookup_cep("01310100")["error"] == "BAD_PAYLOAD"
