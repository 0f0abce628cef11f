import pytest

from app.core.security import UserRole
from app.services.registry_service import mask_rfid

@pytest.mark.parametrize("value,expected", [
    (None, None),
    ("", None),
    ("1234", "1234"),
    ("ABC", "ABC"),
    ("RFID00123456", "********3456"),
])
def test_mask_rfid(value, expected):
    assert mask_rfid(value) == expected

class TestPatientRegistry:

    def test_registry_rows_and_stats(self, client, admin, patient, make_user, headers):
        make_user(UserRole.PATIENT, username="dormant", full_name="Dorian Mant", is_active=False)
        make_user(UserRole.PATIENT, username="noprofile", with_profile=False)

        response = client.get("/api/v1/patients/registry", headers=headers(admin))
        assert response.status_code == 200
        body = response.json()
        assert body["stats"] == {"total": 3, "active": 2, "inactive": 1}

        rows = {row["username"]: row for row in body["data"]}
        jane = rows["janedoe"]
        assert jane["fullName"] == "Jane Doe"
        assert jane["healthId"] == "HID-001"
        assert jane["rfidMasked"] == "********3456"
        assert rows["noprofile"]["patientId"] is None

    def test_status_filter(self, client, admin, patient, make_user, headers):
        make_user(UserRole.PATIENT, username="dormant", is_active=False)

        response = client.get("/api/v1/patients/registry", params={"status": "inactive"}, headers=headers(admin))
        body = response.json()
        assert [row["username"] for row in body["data"]] == ["dormant"]
        assert body["stats"] == {"total": 1, "active": 0, "inactive": 1}

    @pytest.mark.parametrize("term", ["jane d", "HID-0", "901234", "rfid001", "JANEDOE@example"])
    def test_search(self, client, admin, patient, make_user, headers, term):
        make_user(UserRole.PATIENT, username="bystander", full_name="Bob Stander")

        response = client.get("/api/v1/patients/registry", params={"q": term}, headers=headers(admin))
        assert [row["username"] for row in response.json()["data"]] == ["janedoe"]

    def test_registry_forbidden_for_patients(self, client, patient, headers):
        response = client.get("/api/v1/patients/registry", headers=headers(patient))
        assert response.status_code == 403

class TestPatientLookup:

    @pytest.mark.parametrize("params", [
        {"patientId": "HID-001"},
        {"healthId": "HID-001"},
        {"nic": "901234567V"},
        {"rfid": "RFID00123456"},
    ])
    def test_lookup(self, client, doctor, patient, headers, params):
        response = client.get("/api/v1/patients/lookup", params=params, headers=headers(doctor))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["userId"] == patient.id
        assert data["rfidMasked"] == "********3456"

    def test_lookup_by_record_id(self, client, doctor, patient, headers):
        response = client.get("/api/v1/patients/lookup", params={"patientId": patient.patient.id},
                              headers=headers(doctor))
        assert response.json()["data"]["patientId"] == patient.patient.id

    def test_lookup_requires_a_key(self, client, doctor, headers):
        response = client.get("/api/v1/patients/lookup", params={"nic": "  "}, headers=headers(doctor))
        assert response.status_code == 400
        assert response.json()["message"] == "Provide at least one of: patientId (health_id), nic, rfid"

    def test_lookup_not_found(self, client, doctor, patient, headers):
        response = client.get("/api/v1/patients/lookup", params={"nic": "000000000V"}, headers=headers(doctor))
        assert response.status_code == 404
        assert response.json()["message"] == "Patient not found"

class TestDoctorRegistry:

    def test_registry_with_specialization(self, client, admin, doctor, make_user, headers):
        make_user(UserRole.DOCTOR, username="cardio", full_name="Cara Dio", specialization="Cardiology",
                  license_number="LIC-77")

        response = client.get("/api/v1/doctors/registry", params={"specialization": "cardiology"},
                              headers=headers(admin))
        assert response.status_code == 200
        body = response.json()
        assert [row["username"] for row in body["data"]] == ["cardio"]
        assert body["data"][0]["licenseNumber"] == "LIC-77"
        assert body["stats"]["total"] == 1

    def test_search(self, client, admin, doctor, make_user, headers):
        make_user(UserRole.DOCTOR, username="cardio", specialization="Cardiology")

        response = client.get("/api/v1/doctors/registry", params={"q": "diagno"}, headers=headers(admin))
        assert [row["username"] for row in response.json()["data"]] == ["drhouse"]

    def test_admin_only(self, client, doctor, headers):
        response = client.get("/api/v1/doctors/registry", headers=headers(doctor))
        assert response.status_code == 403
