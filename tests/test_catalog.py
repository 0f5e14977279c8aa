from medly.services import catalog as service
from medly.services import profiles
from medly.store import LOCATIONS, ROLE_PROFILES, SPECIALTIES

ADDRESS = {
    "cep": "04094-050",
    "street": "Avenida Pedro Álvares Cabral",
    "number": "s/n",
    "neighborhood": "Ibirapuera",
    "city": "São Paulo",
    "state": "SP",
}


def test_create_location_with_coordinates(seeded, gestor):
    result = service.create_location(
        seeded, gestor, {"name": "Clínica Ibirapuera", "type": "clinica", "address": ADDRESS, "lat": -23.58, "lng": -46.65}
    )
    assert result.success, result.error
    assert result.data["coordinates"] == {"lat": -23.58, "lng": -46.65}
    assert result.warnings is None


def test_create_location_without_coordinates_warns(seeded, gestor):
    result = service.create_location(seeded, gestor, {"name": "Posto Sul", "type": "ubs", "address": ADDRESS})
    assert result.success
    assert result.data["coordinates"] is None
    assert result.warnings


def test_location_validation_and_conflict(seeded, gestor, escalista):
    half = {"name": "Posto", "type": "ubs", "address": ADDRESS, "lat": -23.5}
    assert service.create_location(seeded, gestor, half).kind == "validation"
    bad_cep = {"name": "Posto", "type": "ubs", "address": {**ADDRESS, "cep": "123"}}
    assert service.create_location(seeded, gestor, bad_cep).kind == "validation"
    duplicate = {"name": "hospital central", "type": "hospital", "address": ADDRESS}
    assert service.create_location(seeded, gestor, duplicate).kind == "conflict"
    assert service.create_location(seeded, escalista, {"name": "X", "type": "ubs", "address": ADDRESS}).kind == "permission"


def test_update_location_keeps_coordinates(seeded, gestor):
    result = service.update_location(seeded, gestor, "location-upa-norte", {"phone": "(11) 3333-2001"})
    assert result.success, result.error
    assert result.data["phone"] == "(11) 3333-2001"
    assert result.data["coordinates"] == {"lat": -23.4990, "lng": -46.6250}


def test_list_locations_filters(seeded):
    assert [item["id"] for item in service.list_locations(seeded, type="upa")] == ["location-upa-norte"]
    assert len(service.list_locations(seeded, search="são paulo")) == 3
    assert [item["id"] for item in service.list_locations(seeded, search="mariana")] == ["location-ubs-vila-mariana"]


def test_delete_location_in_use(seeded, admin, doctor):
    assert service.delete_location(seeded, doctor, "location-hospital-central").kind == "permission"
    assert service.delete_location(seeded, admin, "location-hospital-central").kind == "state"


def test_delete_unused_location(seeded, admin, gestor):
    created = service.create_location(seeded, gestor, {"name": "Posto Leste", "type": "ubs", "address": ADDRESS}).data
    assert service.delete_location(seeded, admin, created["id"]).success
    assert seeded.get_by_id(LOCATIONS, created["id"]) is None


def test_specialties(seeded, admin, escalista):
    names = [item["name"] for item in service.list_specialties(seeded)]
    assert names == sorted(names, key=str.lower)

    created = service.create_specialty(
        seeded, admin, {"name": "Cardiologia", "scale_type_ids": ["scale-type-12h"]}
    )
    assert created.success
    assert service.create_specialty(seeded, admin, {"name": "cardiologia"}).kind == "conflict"
    assert service.create_specialty(seeded, admin, {"name": "Neuro", "scale_type_ids": ["ghost"]}).kind == "not_found"
    assert service.create_specialty(seeded, escalista, {"name": "Neuro"}).kind == "permission"

    updated = service.update_specialty(seeded, admin, created.data["id"], {"description": "Coração"})
    assert updated.data["description"] == "Coração"
    assert updated.data["scale_type_ids"] == ["scale-type-12h"]
    assert service.delete_specialty(seeded, admin, "specialty-clinica").kind == "state"
    assert service.delete_specialty(seeded, admin, created.data["id"]).success


def test_delete_scale_type_detaches_specialties(seeded, admin):
    scale_type = service.create_scale_type(
        seeded, admin, {"name": "Sobreaviso", "default_duration_hours": 12, "default_shift": "noite"}
    ).data
    specialty = service.create_specialty(
        seeded, admin, {"name": "Anestesiologia", "scale_type_ids": [scale_type["id"], "scale-type-24h"]}
    ).data
    assert service.delete_scale_type(seeded, admin, scale_type["id"]).success
    assert seeded.get_by_id(SPECIALTIES, specialty["id"])["scale_type_ids"] == ["scale-type-24h"]
    assert service.delete_scale_type(seeded, admin, "scale-type-12h").kind == "state"


def test_scale_type_validation(seeded, admin):
    invalid = {"name": "Longo", "default_duration_hours": 72, "default_shift": "noite"}
    assert service.create_scale_type(seeded, admin, invalid).kind == "validation"
    renamed = service.update_scale_type(seeded, admin, "scale-type-manha", {"name": "Plantão 12h"})
    assert renamed.kind == "conflict"


def test_list_profiles_counts_enabled(seeded):
    counts = {profile["role"]: profile["enabled_permissions"] for profile in profiles.list_profiles(seeded)}
    assert counts["admin"] == 44
    assert counts["medico"] < counts["escalista"] < counts["gestor"] < counts["admin"]


def test_profile_crud(seeded, admin, escalista):
    data = {"name": "Auditor", "role": "gestor", "permissions": {"reports": {"view": True, "view_all": True}}}
    assert profiles.create_profile(seeded, escalista, data).kind == "permission"
    created = profiles.create_profile(seeded, admin, data)
    assert created.success, created.error
    assert profiles.create_profile(seeded, admin, {**data, "name": "auditor"}).kind == "conflict"

    updated = profiles.update_profile(seeded, admin, created.data["id"], {"description": "Somente leitura"})
    assert updated.data["description"] == "Somente leitura"
    assert updated.data["permissions"]["reports"]["view_all"] is True

    assert profiles.delete_profile(seeded, admin, created.data["id"]).success
    assert profiles.delete_profile(seeded, admin, "profile-admin").kind == "state"
    assert seeded.get_by_id(ROLE_PROFILES, "profile-admin") is not None
