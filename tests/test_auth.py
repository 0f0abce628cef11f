from datetime import timedelta

from app.core.security import UserRole, verify_token, create_access_token
from app.models.user import User

# Test data
test_user_data = {
    "fullName": "Test User Junior",
    "email": "test@example.com",
    "username": "testuser",
    "password": "TestPassword123",
}

class TestRegistration:

    def test_register_user(self, client):
        """Registration creates an active patient and signs it in."""
        response = client.post("/api/v1/auth/register", json=test_user_data)
        assert response.status_code == 201

        body = response.json()
        assert body["success"] is True
        user = body["data"]["user"]
        assert user["email"] == test_user_data["email"]
        assert user["role"] == "patient"
        assert user["firstName"] == "Test"
        assert user["lastName"] == "User Junior"
        assert user["fullName"] == "Test User Junior"
        assert user["isActive"] is True
        assert user["profileImageUri"] is None
        assert "password" not in user

        payload = verify_token(body["data"]["token"])
        assert payload.user_id == user["id"]
        assert payload.role == "patient"
        assert payload.token_type == "access"

    def test_register_hashes_password(self, client, db):
        client.post("/api/v1/auth/register", json=test_user_data)

        user = db.query(User).filter(User.username == "testuser").first()
        assert user.password_hash != test_user_data["password"]
        assert user.password_hash.startswith("$2")

    def test_register_duplicate(self, client):
        client.post("/api/v1/auth/register", json=test_user_data)

        duplicate = dict(test_user_data, username="otheruser")
        response = client.post("/api/v1/auth/register", json=duplicate)
        assert response.status_code == 409
        assert response.json() == {"success": False, "message": "User already exists"}

    def test_register_normalises_case(self, client, db):
        first = dict(test_user_data, email="Alice@Example.com", username="AliceW")
        response = client.post("/api/v1/auth/register", json=first)
        assert response.status_code == 201
        user = response.json()["data"]["user"]
        assert user["email"] == "alice@example.com"
        assert user["username"] == "alicew"

        again = dict(test_user_data, email="alice@example.com", username="alicew")
        response = client.post("/api/v1/auth/register", json=again)
        assert response.status_code == 409
        assert db.query(User).count() == 1

    def test_register_invalid_password(self, client):
        """Short passwords are rejected with the validation envelope."""
        invalid_data = dict(test_user_data, password="weak")

        response = client.post("/api/v1/auth/register", json=invalid_data)
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert any(error["field"] == "password" for error in body["errors"])

    def test_register_short_username(self, client):
        response = client.post("/api/v1/auth/register", json=dict(test_user_data, username="abc"))
        assert response.status_code == 400

class TestLogin:

    def test_login_with_username(self, client):
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.post("/api/v1/auth/login", json={
            "username": "testuser",
            "password": test_user_data["password"],
        })
        assert response.status_code == 200

        body = response.json()
        assert body["message"] == "Login successful"
        assert body["data"]["user"]["username"] == "testuser"
        assert body["data"]["token"]

    def test_login_with_email_is_case_insensitive(self, client):
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.post("/api/v1/auth/login", json={
            "username": "  TEST@Example.com ",
            "password": test_user_data["password"],
        })
        assert response.status_code == 200

    def test_login_unknown_user(self, client):
        response = client.post("/api/v1/auth/login", json={
            "username": "nobody",
            "password": "wrongpassword",
        })
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_login_wrong_password(self, client):
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.post("/api/v1/auth/login", json={
            "username": "testuser",
            "password": "WrongPassword123",
        })
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_login_inactive_account(self, client, make_user):
        make_user(UserRole.DOCTOR, username="sleepy", is_active=False)

        response = client.post("/api/v1/auth/login", json={
            "username": "sleepy",
            "password": "Password123",
        })
        assert response.status_code == 403
        assert response.json()["message"] == "Account is not active"

    def test_login_missing_password_hash(self, client, db, make_user):
        user = make_user(UserRole.PATIENT, username="nohash")
        user.password_hash = ""
        db.commit()

        response = client.post("/api/v1/auth/login", json={
            "username": "nohash",
            "password": "Password123",
        })
        assert response.status_code == 500
        assert response.json()["message"] == "Account is misconfigured (missing password hash)"

class TestSession:

    def test_me(self, client, patient, headers):
        response = client.get("/api/v1/auth/me", headers=headers(patient))
        assert response.status_code == 200
        assert response.json()["data"]["username"] == "janedoe"

    def test_me_missing_token(self, client):
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.json()["message"] == "Missing auth token"

    def test_me_invalid_token(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token"

    def test_me_expired_token(self, client, patient):
        token = create_access_token({"sub": str(patient.id)}, expires_delta=timedelta(minutes=-5))
        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token"

    def test_me_deactivated_user(self, client, db, patient, headers):
        auth = headers(patient)
        patient.is_active = False
        db.commit()

        response = client.get("/api/v1/auth/me", headers=auth)
        assert response.status_code == 403

    def test_me_deleted_user(self, client, db, patient, headers):
        auth = headers(patient)
        db.delete(patient.patient)
        db.delete(patient)
        db.commit()

        response = client.get("/api/v1/auth/me", headers=auth)
        assert response.status_code == 404
        assert response.json()["message"] == "User not found"

    def test_refresh(self, client, doctor, headers):
        response = client.post("/api/v1/auth/refresh", headers=headers(doctor))
        assert response.status_code == 200

        body = response.json()
        assert body["message"] == "Session refreshed"
        assert verify_token(body["data"]["token"]).user_id == doctor.id

    def test_logout(self, client):
        response = client.post("/api/v1/auth/logout")
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Logged out", "data": None}

    def test_change_password(self, client, patient, headers):
        response = client.post(
            "/api/v1/auth/change-password",
            json={"currentPassword": "Password123", "newPassword": "NewPassword456"},
            headers=headers(patient),
        )
        assert response.status_code == 200

        response = client.post("/api/v1/auth/login", json={
            "username": "janedoe",
            "password": "NewPassword456",
        })
        assert response.status_code == 200

    def test_change_password_wrong_current(self, client, patient, headers):
        response = client.post(
            "/api/v1/auth/change-password",
            json={"currentPassword": "nope-nope", "newPassword": "NewPassword456"},
            headers=headers(patient),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Current password is incorrect"
