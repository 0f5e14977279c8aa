import logging

import requests

from medly.core.config import settings
from medly.core.validators import only_digits

logger = logging.getLogger("medly.cep")


def lookup_cep(cep: str) -> dict:
    digits = only_digits(cep)
    if len(digits) != 8:
        return {"status": "ERROR", "error": "INVALID_CEP"}
    url = f"{settings.VIACEP_URL.rstrip('/')}/{digits}/json/"
    try:
        resp = requests.get(url, timeout=settings.VIACEP_TIMEOUT)
    except requests.RequestException as exc:
        logger.warning("cep lookup request failed: %s", exc)
        return {"status": "ERROR", "error": "REQUEST_FAILED"}
    if resp.status_code != 200:
        logger.warning("cep lookup status_code=%s", resp.status_code)
        return {"status": "ERROR", "error": "BAD_STATUS"}
    try:
        data = resp.json()
    except ValueError:
        return {"status": "ERROR", "error": "BAD_PAYLOAD"}
    if data.get("erro"):
        logger.info("cep not found cep=%s", digits)
        return {"status": "ERROR", "error": "NOT_FOUND"}
    address = {
        "cep": data.get("cep") or f"{digits[:5]}-{digits[5:]}",
        "street": data.get("logradouro") or "",
        "complement": data.get("complemento") or None,
        "neighborhood": data.get("bairro") or "",
        "city": data.get("localidade") or "",
        "state": data.get("uf") or "",
    }
    return {"status": "OK", "address": address}
