import asyncio

from medly.core.security import verify_password
from medly.services import auth as service
from medly.services.notifications import list_notifications
from medly.store import CURRENT_USER_KEY, USERS


def _registration(**overrides):
    data = {
        "name": "Dra. Helena Prado",
        "email": "Helena.Prado@example.com",
        "phone": "(11) 97777-1234",
        "cpf": "123.456.780-62",
        "password": "Senha123",
        "confirm_password": "Senha123",
        "address": {
            "cep": "01310-100",
            "street": "Avenida Paulista",
            "number": "1578",
            "neighborhood": "Bela Vista",
            "city": "São Paulo",
            "state": "SP",
        },
    }
    data.update(overrides)
    return data


def test_register_creates_pending_doctor(seeded, admin):
    result = service.register(seeded, _registration())
    assert result.success, result.error
    user = result.data
    assert user["role"] == "medico"
    assert user["status"] == "pendente"
    assert user["email"] == "helena.prado@example.com"
    assert "password_hash" not in user
    assert user["avatar_url"].startswith("https://api.dicebear.com/")

    stored = seeded.get_by_id(USERS, user["id"])
    assert verify_password("Senha123", stored["password_hash"])
    assert any(item["title"] == "Novo cadastro" for item in list_notifications(seeded, admin["id"]))


def test_register_rejects_duplicates(seeded):
    taken_email = service.register(seeded, _registration(email="ADMIN@medly.com.br"))
    assert taken_email.kind == "conflict"
    assert taken_email.error == "Este email já está cadastrado"

    taken_cpf = service.register(seeded, _registration(cpf="52998224725"))
    assert taken_cpf.error == "Este CPF já está cadastrado"


def test_register_validation(seeded):
    assert service.register(seeded, _registration(cpf="111.111.111-11")).kind == "validation"
    assert service.register(seeded, _registration(phone="11977771234")).kind == "validation"
    mismatch = service.register(seeded, _registration(confirm_password="Senha124"))
    assert "As senhas não coincidem" in mismatch.error
    weak = service.register(seeded, _registration(password="senha123", confirm_password="senha123"))
    assert "maiúscula" in weak.error


def test_login_success_sets_session(seeded):
    result = service.login(seeded, "Admin@Medly.com.br", "Medly123")
    assert result.success
    assert result.data["token_type"] == "bearer"
    assert result.data["access_token"]
    assert result.data["user"]["id"] == "user-admin"
    assert seeded.get_value(CURRENT_USER_KEY) == "user-admin"
    assert service.session_user(seeded)["id"] == "user-admin"


def test_login_wrong_password(seeded):
    result = service.login(seeded, "admin@medly.com.br", "errada")
    assert result.kind == "validation"
    assert result.error == service.INVALID_CREDENTIALS
    assert service.login(seeded, "ninguem@medly.com.br", "Medly123").error == service.INVALID_CREDENTIALS


def test_login_inactive_user(seeded, other_doctor):
    seeded.update(USERS, other_doctor["id"], {"status": "inativo"})
    result = service.login(seeded, other_doctor["email"], "Medly123")
    assert result.kind == "permission"
    assert result.error == service.INACTIVE_USER


def test_logout_clears_session(seeded, admin):
    service.login(seeded, admin["email"], "Medly123")
    assert service.logout(seeded, admin).success
    assert service.session_user(seeded) is None


def test_forgot_password_never_reveals_accounts(seeded):
    assert service.forgot_password(seeded, "admin@medly.com.br").success
    assert service.forgot_password(seeded, "ninguem@medly.com.br").success


def test_change_password(seeded, doctor):
    assert service.change_password(seeded, doctor, "errada", "NovaSenha1").kind == "validation"
    assert service.change_password(seeded, doctor, "Medly123", "fraca").kind == "validation"
    assert service.change_password(seeded, doctor, "Medly123", "Medly123").kind == "state"
    assert service.change_password(seeded, doctor, "Medly123", "NovaSenha1").success
    assert service.login(seeded, doctor["email"], "NovaSenha1").success


def test_simulated_latency_can_be_disabled():
    assert asyncio.run(service.simulate_latency(0, 0)) is None
