from medly.services import ratings as service
from medly.store import LOCATIONS, USERS


def _location_rating(**overrides):
    data = {
        "scale_id": "scale-done",
        "type": "doctor_to_location",
        "to_location_id": "location-hospital-central",
        "overall_score": 5,
    }
    data.update(overrides)
    return data


def _doctor_rating(**overrides):
    data = {
        "scale_id": "scale-done",
        "type": "location_to_doctor",
        "to_user_id": "user-medico-1",
        "overall_score": 4,
        "punctuality_score": 5,
    }
    data.update(overrides)
    return data


def test_average_score():
    assert service.average_score([]) is None
    assert service.average_score([{"overall_score": 4}, {"overall_score": 5}, {"overall_score": 5}]) == 4.7


def test_doctor_rates_location(seeded, doctor):
    result = service.create_rating(seeded, doctor, _location_rating())
    assert result.success, result.error
    assert result.data["from_user_id"] == doctor["id"]
    assert seeded.get_by_id(LOCATIONS, "location-hospital-central")["average_rating"] == 5.0


def test_rating_once_per_scale(seeded, doctor):
    service.create_rating(seeded, doctor, _location_rating())
    assert service.create_rating(seeded, doctor, _location_rating(overall_score=1)).kind == "conflict"


def test_only_assigned_doctor_rates_location(seeded, other_doctor):
    assert service.create_rating(seeded, other_doctor, _location_rating()).kind == "permission"


def test_location_must_match_scale(seeded, doctor):
    result = service.create_rating(seeded, doctor, _location_rating(to_location_id="location-upa-norte"))
    assert result.kind == "validation"


def test_only_finished_scales_are_rated(seeded, doctor):
    result = service.create_rating(seeded, doctor, _location_rating(scale_id="scale-assigned"))
    assert result.kind == "state"


def test_manager_rates_doctor(seeded, escalista, doctor):
    result = service.create_rating(seeded, escalista, _doctor_rating())
    assert result.success, result.error
    assert seeded.get_by_id(USERS, doctor["id"])["average_rating"] == 4.0


def test_doctors_cannot_rate_doctors(seeded, other_doctor):
    assert service.create_rating(seeded, other_doctor, _doctor_rating()).kind == "permission"


def test_rating_payload_validation(seeded, doctor):
    assert service.create_rating(seeded, doctor, _location_rating(overall_score=6)).kind == "validation"
    assert service.create_rating(seeded, doctor, _location_rating(to_location_id=None)).kind == "validation"


def test_list_ratings_filters(seeded, doctor, escalista):
    service.create_rating(seeded, doctor, _location_rating())
    service.create_rating(seeded, escalista, _doctor_rating())
    assert len(service.list_ratings(seeded, scale_id="scale-done")) == 2
    assert len(service.list_ratings(seeded, to_user_id=doctor["id"])) == 1
    assert len(service.list_ratings(seeded, to_location_id="location-hospital-central")) == 1
