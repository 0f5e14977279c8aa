import threading
from unittest.mock import patch

from medly.core.config import settings
from medly.services import auth as auth_service


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_login_and_me(client):
    response = client.post("/api/auth/login", json={"email": "admin@medly.com.br", "password": "Medly123"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    body = me.json()
    assert body["user"]["id"] == "user-admin"
    assert "password_hash" not in body["user"]
    assert body["enabled_permissions"] == 44
    assert body["unread_notifications"] == 1

    assert client.get("/api/auth/session").json()["user"]["id"] == "user-admin"


def test_login_errors(client, seeded):
    bad = client.post("/api/auth/login", json={"email": "admin@medly.com.br", "password": "x"})
    assert bad.status_code == 401
    seeded.update("users", "user-medico-2", {"status": "inativo"})
    inactive = client.post("/api/auth/login", json={"email": "paulo.lima@medly.com.br", "password": "Medly123"})
    assert inactive.status_code == 403


def test_login_runs_store_work_off_the_event_loop(client, monkeypatch):
    threads = {}
    login = auth_service.login

    async def no_latency():
        threads["loop"] = threading.get_ident()

    def tracked_login(store, email, password):
        threads["login"] = threading.get_ident()
        return login(store, email, password)

    monkeypatch.setattr(auth_service, "simulate_latency", no_latency)
    monkeypatch.setattr(auth_service, "login", tracked_login)
    response = client.post("/api/auth/login", json={"email": "admin@medly.com.br", "password": "Medly123"})
    assert response.status_code == 200
    assert threads["login"] != threads["loop"]


def test_oauth_token_form(client):
    response = client.post("/api/auth/token", data={"username": "gestor@medly.com.br", "password": "Medly123"})
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"


def test_protected_routes_require_token(client):
    assert client.get("/api/scales").status_code == 401
    assert client.get("/api/scales", headers={"Authorization": "Bearer invalido"}).status_code == 401


def test_register_endpoint(client):
    payload = {
        "name": "Dr. Otavio Reis",
        "email": "otavio@example.com",
        "phone": "(21) 98888-7777",
        "cpf": "123.456.780-62",
        "password": "Senha123",
        "confirm_password": "Senha123",
        "address": {
            "cep": "20040-020",
            "street": "Rua da Assembleia",
            "number": "10",
            "neighborhood": "Centro",
            "city": "Rio de Janeiro",
            "state": "RJ",
        },
    }
    created = client.post("/api/auth/register", json=payload)
    assert created.status_code == 201
    assert created.json()["status"] == "pendente"
    assert client.post("/api/auth/register", json=payload).status_code == 409


def test_scales_listing_carries_deadlines(client, auth_headers):
    response = client.get("/api/scales", headers=auth_headers("user-medico-2"))
    assert response.status_code == 200
    items = {item["id"]: item for item in response.json()["items"]}
    assert set(items) == {"scale-open", "scale-pediatria"}
    assert items["scale-open"]["days_until"] == 10
    assert items["scale-open"]["free_cancellation"] is True
    assert items["scale-pediatria"]["duration_hours"] == 6


def test_scale_lifecycle_over_http(client, auth_headers):
    escalista = auth_headers("user-escalista")
    doctor = auth_headers("user-medico-2")

    applied = client.post("/api/scales/scale-open/apply", headers=doctor)
    assert applied.status_code == 201
    candidature_id = applied.json()["id"]
    assert client.post("/api/scales/scale-open/apply", headers=doctor).status_code == 409

    accepted = client.post(f"/api/candidatures/{candidature_id}/accept", headers=escalista)
    assert accepted.status_code == 200
    assert accepted.json()["workflow_step"] == 1

    workflow = client.get(f"/api/candidatures/{candidature_id}/workflow", headers=doctor).json()
    assert workflow["steps"][0]["current"] is True

    checked_in = client.post(
        "/api/scales/scale-open/check-in", headers=doctor, json={"lat": -23.4990, "lng": -46.6250}
    )
    assert checked_in.status_code == 200
    body = checked_in.json()
    assert body["warnings"] == ["Check-in registrado fora do raio do local"]
    assert body["data"]["status"] == "em_andamento"

    assert client.post("/api/scales/scale-open/cancel", headers=escalista).status_code == 422


def test_create_scale_permission_over_http(client, auth_headers):
    response = client.post("/api/scales", headers=auth_headers("user-medico-1"), json={"title": "x"})
    assert response.status_code == 403


def test_hard_delete_scale_admin_only(client, auth_headers):
    assert client.delete("/api/scales/scale-draft/hard", headers=auth_headers("user-gestor")).status_code == 403
    assert client.delete("/api/scales/scale-draft/hard", headers=auth_headers("user-admin")).status_code == 200
    assert client.get("/api/scales/scale-draft", headers=auth_headers("user-admin")).status_code == 404


def test_cep_lookup_route(client, auth_headers):
    address = {"status": "OK", "address": {"cep": "01001-000", "city": "São Paulo"}}
    with patch("medly.api.v1.locations.lookup_cep", return_value=address) as lookup:
        response = client.get("/api/locations/cep/01001000", headers=auth_headers("user-gestor"))
    assert response.json() == address
    lookup.assert_called_once_with("01001000")


def test_document_upload_over_http(client, auth_headers):
    response = client.post(
        "/api/documents",
        headers=auth_headers("user-medico-1"),
        data={"name": "Diploma", "category": "diploma"},
        files={"file": ("diploma.pdf", b"%PDF-1.4 diploma", "application/pdf")},
    )
    assert response.status_code == 201
    document = response.json()
    assert document["user_id"] == "user-medico-1"
    assert document["status"] == "pendente"

    listed = client.get("/api/documents", headers=auth_headers("user-medico-1")).json()["items"]
    assert [item["id"] for item in listed] == [document["id"]]


def test_audit_logs_require_settings_view_all(client, auth_headers):
    assert client.get("/api/audit-logs", headers=auth_headers("user-gestor")).status_code == 403
    response = client.get("/api/audit-logs", headers=auth_headers("user-admin"))
    assert response.status_code == 200
    assert len(response.json()["items"]) == 2


def test_dashboard_route(client, auth_headers):
    data = client.get("/api/dashboard", headers=auth_headers("user-medico-1")).json()
    assert data["scope"] == "own"


def test_notifications_read(client, auth_headers):
    headers = auth_headers("user-medico-1")
    items = client.get("/api/me/notifications", headers=headers).json()["items"]
    assert len(items) == 2
    assert client.post(f"/api/me/notifications/{items[0]['id']}/read", headers=headers).status_code == 200
    other = auth_headers("user-medico-2")
    assert client.post(f"/api/me/notifications/{items[1]['id']}/read", headers=other).status_code == 403


def test_geolocation_mock_flag_is_honoured(client, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "GEOLOCATION_MOCK_ENABLED", False)
    response = client.post(
        "/api/scales/scale-assigned/check-in", headers=auth_headers("user-medico-1"), json={"use_mock": True}
    )
    assert response.status_code == 422
    assert "MOCK_DISABLED" in response.json()["detail"]
