"""API tests for verifier accounts and verification events."""
from httpx import AsyncClient

from certissuer.db.models import Verifier

SIGNUP = {
    "firstName": "Grace",
    "lastName": "Hopper",
    "email": "Grace@Navy.mil",
    "password": "cobol-forever",
}


class TestSignup:

    async def test_signup_stores_bcrypt_hash(self, client: AsyncClient, db_session):
        response = await client.post("/signup", json=SIGNUP)

        assert response.status_code == 201
        verifier = db_session.query(Verifier).filter_by(email="grace@navy.mil").one()
        assert verifier.id == response.json()["id"]
        assert verifier.password_hash.startswith("$2")
        assert "cobol-forever" not in verifier.password_hash

    async def test_duplicate_email_conflicts(self, client: AsyncClient):
        await client.post("/signup", json=SIGNUP)
        response = await client.post("/signup", json={**SIGNUP, "email": "GRACE@navy.mil"})
        assert response.status_code == 409

    async def test_all_errors_reported(self, client: AsyncClient):
        response = await client.post(
            "/signup",
            json={"firstName": "G", "lastName": "Hopper-Hopper", "email": "nope", "password": "short"},
        )
        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["errors"]}
        assert fields == {"firstName", "lastName", "email", "password"}


class TestSignin:

    async def test_signin_and_dashboard(self, client: AsyncClient):
        await client.post("/signup", json=SIGNUP)

        response = await client.post("/signin", json={"email": "grace@navy.mil", "password": "cobol-forever"})
        assert response.status_code == 200
        token = response.json()["token"]

        response = await client.get("/dashboard", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["email"] == "grace@navy.mil"
        assert user["firstName"] == "Grace"
        assert "password" not in user
        assert "passwordHash" not in user

    async def test_wrong_password(self, client: AsyncClient):
        await client.post("/signup", json=SIGNUP)
        response = await client.post("/signin", json={"email": "grace@navy.mil", "password": "fortran"})
        assert response.status_code == 401

    async def test_unknown_email_same_error(self, client: AsyncClient):
        response = await client.post("/signin", json={"email": "nobody@navy.mil", "password": "fortran"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    async def test_lockout_after_failures(self, client: AsyncClient):
        await client.post("/signup", json=SIGNUP)
        bad = {"email": "grace@navy.mil", "password": "wrong-password"}

        for _ in range(5):
            assert (await client.post("/signin", json=bad)).status_code == 401

        response = await client.post("/signin", json={"email": "grace@navy.mil", "password": "cobol-forever"})
        assert response.status_code == 429
        assert "Retry-After" in response.headers

    async def test_dashboard_is_verifier_only(self, client: AsyncClient, org_headers):
        response = await client.get("/dashboard", headers=org_headers)
        assert response.status_code == 403


class TestVerifications:

    async def test_record_verification(self, client: AsyncClient, verifier_headers):
        response = await client.post(
            "/verify",
            json={"name": "Alice", "email": "Alice@Example.com", "cid": "bafybeigdyrzt"},
            headers=verifier_headers,
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["email"] == "alice@example.com"
        assert data["cid"] == "bafybeigdyrzt"

    async def test_organizations_may_record(self, client: AsyncClient, org_headers):
        response = await client.post(
            "/verify",
            json={"name": "Alice", "email": "alice@example.com", "cid": "bafy"},
            headers=org_headers,
        )
        assert response.status_code == 201

    async def test_all_fields_required(self, client: AsyncClient, verifier_headers):
        response = await client.post("/verify", json={"name": "Alice"}, headers=verifier_headers)
        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["errors"]}
        assert fields == {"email", "cid"}

    async def test_check_user_type_verifier(self, client: AsyncClient, verifier_headers):
        response = await client.get("/check-user-type", headers=verifier_headers)
        body = response.json()
        assert body["type"] == "verifier"
        assert body["name"] == "Ada"
        assert body["email"] == "ada@example.com"
