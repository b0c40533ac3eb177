"""API tests for KYC submission and owner review."""
import pytest
from httpx import AsyncClient
from sqlalchemy.exc import SQLAlchemyError

from certissuer.audit import get_audit_logger
from certissuer.db.models import KycStatus, Organization
from tests.conftest import bearer, wallet_login


async def submit(client: AsyncClient, headers: dict, form: dict, files: dict):
    return await client.post("/kyc", data=form, files=files, headers=headers)


class TestKycSubmission:

    async def test_submission_is_pending(
        self, client: AsyncClient, org_headers, kyc_form, certificate_file
    ):
        response = await submit(client, org_headers, kyc_form, certificate_file)

        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert data["isKycVerified"] is False
        assert data["kycDetails"]["status"] == "Pending"
        assert data["kycDetails"]["website"] == "https://acme.edu"
        assert data["kycDetails"]["contactPerson"]["fullName"] == "Jane Registrar"
        assert "/uploads/" in data["kycDetails"]["certificateUrl"]
        assert data["kycDetails"]["certificateUrl"].endswith("-registration_cert.pdf")

    async def test_certificate_served_back(
        self, client: AsyncClient, org_headers, kyc_form, certificate_file
    ):
        response = await submit(client, org_headers, kyc_form, certificate_file)
        url = response.json()["data"]["kycDetails"]["certificateUrl"]

        served = await client.get(url.replace("http://test", ""))
        assert served.status_code == 200
        assert served.content.startswith(b"%PDF")

    async def test_certificate_removed_when_save_fails(
        self, client: AsyncClient, org_headers, kyc_form, certificate_file, monkeypatch
    ):
        import certissuer.api.kyc as kyc_api
        import certissuer.config as config

        def failing_submit(*args, **kwargs):
            raise SQLAlchemyError("database unavailable")

        monkeypatch.setattr(kyc_api, "submit_kyc", failing_submit)

        response = await submit(client, org_headers, kyc_form, certificate_file)

        assert response.status_code == 500
        assert response.json()["detail"] == "Server error"
        assert list(config.UPLOAD_DIR.iterdir()) == []

    async def test_validation_errors_aggregated(
        self, client: AsyncClient, org_headers, kyc_form
    ):
        kyc_form["orgName"] = "A"
        kyc_form["personalEmail"] = "nope"

        response = await submit(client, org_headers, kyc_form, {})

        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["errors"]}
        assert fields == {"orgName", "personalEmail", "certificate"}

    async def test_requires_organization_session(
        self, client: AsyncClient, verifier_headers, kyc_form, certificate_file
    ):
        response = await submit(client, verifier_headers, kyc_form, certificate_file)
        assert response.status_code == 403

    async def test_requires_session(self, client: AsyncClient, kyc_form, certificate_file):
        response = await submit(client, {}, kyc_form, certificate_file)
        assert response.status_code == 401

    async def test_resubmission_resets_approval(
        self, client: AsyncClient, org_account, org_headers, owner_headers, kyc_form, certificate_file
    ):
        await submit(client, org_headers, kyc_form, certificate_file)
        response = await client.post(
            "/updateOrgStatus",
            json={"walletAddress": org_account.address, "status": "Approved"},
            headers=owner_headers,
        )
        assert response.json()["data"]["isKycVerified"] is True

        kyc_form["orgName"] = "Acme University"
        response = await submit(client, org_headers, kyc_form, certificate_file)

        data = response.json()["data"]
        assert data["kycDetails"]["status"] == "Pending"
        assert data["kycDetails"]["orgName"] == "Acme University"
        assert data["isKycVerified"] is False

    async def test_me_returns_profile(
        self, client: AsyncClient, org_account, org_headers, kyc_form, certificate_file
    ):
        response = await client.get("/me", headers=org_headers)
        assert response.status_code == 200
        assert response.json()["kycDetails"] is None

        await submit(client, org_headers, kyc_form, certificate_file)

        response = await client.get("/me", headers=org_headers)
        body = response.json()
        assert body["walletAddress"] == org_account.address.lower()
        assert body["kycDetails"]["orgName"] == "Acme Academy"
        assert body["isKycVerified"] is False


class TestOwnerReview:

    async def test_approve_then_reject(
        self, client: AsyncClient, org_account, org_headers, owner_headers, kyc_form, certificate_file
    ):
        await submit(client, org_headers, kyc_form, certificate_file)

        response = await client.post(
            "/updateOrgStatus",
            json={"walletAddress": org_account.address, "status": "Approved"},
            headers=owner_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Organization approved successfully"
        assert body["data"]["kycDetails"]["status"] == "Approved"
        assert body["data"]["isKycVerified"] is True

        response = await client.post(
            "/updateOrgStatus",
            json={"walletAddress": org_account.address, "status": "Rejected"},
            headers=owner_headers,
        )
        assert response.json()["data"]["kycDetails"]["status"] == "Rejected"
        assert response.json()["data"]["isKycVerified"] is False

    async def test_approval_visible_at_next_login(
        self, client: AsyncClient, org_account, org_headers, owner_headers, kyc_form, certificate_file
    ):
        await submit(client, org_headers, kyc_form, certificate_file)
        await client.post(
            "/updateOrgStatus",
            json={"walletAddress": org_account.address, "status": "Approved"},
            headers=owner_headers,
        )

        body = await wallet_login(client, org_account)
        assert body["isKycVerified"] is True

    async def test_non_owner_cannot_decide(
        self, client: AsyncClient, org_account, org_headers, kyc_form, certificate_file, db_session
    ):
        await submit(client, org_headers, kyc_form, certificate_file)

        response = await client.post(
            "/updateOrgStatus",
            json={"walletAddress": org_account.address, "status": "Approved"},
            headers=org_headers,
        )
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

        org = db_session.query(Organization).filter_by(wallet_address=org_account.address.lower()).one()
        assert org.kyc_status == KycStatus.PENDING.value
        assert org.is_kyc_verified is False

    async def test_decide_requires_session(self, client: AsyncClient, org_account):
        response = await client.post(
            "/updateOrgStatus",
            json={"walletAddress": org_account.address, "status": "Approved"},
        )
        assert response.status_code == 401

    async def test_invalid_decision(self, client: AsyncClient, org_account, org_headers, owner_headers):
        response = await client.post(
            "/updateOrgStatus",
            json={"walletAddress": org_account.address, "status": "Maybe"},
            headers=owner_headers,
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "status"

    async def test_unknown_wallet(self, client: AsyncClient, other_account, owner_headers):
        response = await client.post(
            "/updateOrgStatus",
            json={"walletAddress": other_account.address, "status": "Approved"},
            headers=owner_headers,
        )
        assert response.status_code == 404

    async def test_decision_without_submission(
        self, client: AsyncClient, org_account, org_headers, owner_headers
    ):
        response = await client.post(
            "/updateOrgStatus",
            json={"walletAddress": org_account.address, "status": "Approved"},
            headers=owner_headers,
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

        response = await client.get("/me", headers=org_headers)
        assert response.json()["kycDetails"] is None
        assert response.json()["isKycVerified"] is False

    async def test_decision_is_audited(
        self, client: AsyncClient, org_account, org_headers, owner_headers, kyc_form,
        certificate_file
    ):
        await submit(client, org_headers, kyc_form, certificate_file)
        await client.post(
            "/updateOrgStatus",
            json={"walletAddress": org_account.address, "status": "Rejected"},
            headers=owner_headers,
        )

        events = get_audit_logger().get_recent_events(action_filter="kyc.")
        assert [e["action"] for e in events] == ["kyc.decision", "kyc.submit"]
        assert events[0]["resource"] == org_account.address.lower()
        assert events[0]["details"] == {"status": "Rejected"}
        assert events[0]["principal"].startswith("org:")

    async def test_owner_match_is_case_insensitive(self, client: AsyncClient, app_env, owner_account):
        # Owner configured checksummed; session carries the lowercase form
        assert app_env["CERTISSUER_OWNER_WALLET"] == owner_account.address
        body = await wallet_login(client, owner_account)

        response = await client.get("/kycrequests", headers=bearer(body["token"]))
        assert response.status_code == 200

    async def test_list_pending(
        self, client: AsyncClient, org_headers, owner_headers, kyc_form, certificate_file
    ):
        response = await client.get("/kycrequests", headers=owner_headers)
        assert response.json()["count"] == 0

        await submit(client, org_headers, kyc_form, certificate_file)

        response = await client.get("/kycrequests", headers=owner_headers)
        body = response.json()
        assert body["count"] == 1
        assert body["requests"][0]["kycDetails"]["orgName"] == "Acme Academy"

    async def test_list_pending_owner_only(self, client: AsyncClient, org_headers, verifier_headers):
        assert (await client.get("/kycrequests", headers=org_headers)).status_code == 403
        assert (await client.get("/kycrequests", headers=verifier_headers)).status_code == 403


class TestNoOwnerConfigured:
    """Without a configured owner every review request is denied."""

    @pytest.fixture
    def app_env(self, app_env: dict) -> dict:
        app_env["CERTISSUER_OWNER_WALLET"] = ""
        return app_env

    async def test_review_denied(self, client: AsyncClient, owner_headers, org_account):
        assert (await client.get("/kycrequests", headers=owner_headers)).status_code == 403

        response = await client.post(
            "/updateOrgStatus",
            json={"walletAddress": org_account.address, "status": "Approved"},
            headers=owner_headers,
        )
        assert response.status_code == 403
