import base64
import hashlib
import hmac
import json

import pytest
from fastapi import Depends
from sqlalchemy.orm import Session

from portal import config
from portal.database import get_db
from portal.domain.contracts import service as contract_service
from portal.domain.contracts.router import get_contract_service
from portal.domain.contracts.service import ContractService
from portal.main import app
from portal.models import Contract
from portal.services.zoho_sign import ZohoSignError

PDF_BYTES = b"%PDF-1.7\n1 0 obj\n<<>>\nendobj\n%%EOF"
SIGNED_PDF = b"%PDF-1.7 signed copy"
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(
    b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
).decode()


class FakeSignClient:
    """Records calls the way the Zoho Sign client would receive them"""

    def __init__(self, available=True, embed_url="https://sign.zoho.test/embed/req-1"):
        self.available = available
        self.embed_url = embed_url
        self.request_status = "inprogress"
        self.created = []
        self.submitted = []
        self.embed_hosts = []

    def is_available(self):
        return self.available

    async def create_request(self, file_bytes, filename, title, recipient_name, recipient_email, is_embedded=True):
        self.created.append({"filename": filename, "title": title, "email": recipient_email})
        return f"req-{len(self.created)}", "action-1"

    async def submit_request(self, request_id):
        self.submitted.append(request_id)
        return {"code": 0}

    async def get_request(self, request_id):
        return {"request_id": request_id, "request_status": self.request_status}

    async def get_embed_url(self, request_id, host):
        self.embed_hosts.append(host)
        return self.embed_url

    async def get_documents(self, request_id):
        return [{"document_id": "doc-9", "document_name": "contract.pdf"}]

    async def download_document(self, request_id, document_id):
        return SIGNED_PDF


@pytest.fixture()
def sign_client():
    fake = FakeSignClient()

    def override(db: Session = Depends(get_db)):
        return ContractService(db, sign_client=fake)

    app.dependency_overrides[get_contract_service] = override
    yield fake
    app.dependency_overrides.pop(get_contract_service, None)


def _upload(client, admin_headers, client_user, data=PDF_BYTES, name="Service Agreement.pdf"):
    return client.post(
        "/admin/contracts/upload",
        data={"title": "Service Agreement", "client_user_id": client_user.id},
        files={"file": (name, data, "application/pdf")},
        headers=admin_headers,
    )


@pytest.fixture()
def draft_contract(client, admin_user, client_user, headers_for, sign_client, fake_storage):
    sign_client.available = False
    response = _upload(client, headers_for(admin_user), client_user)
    sign_client.available = True
    assert response.status_code == 200
    return response.json()


# ============================================================================
# Admin upload
# ============================================================================


def test_upload_without_provider_stays_draft(client, admin_user, client_user, headers_for, fake_storage):
    response = _upload(client, headers_for(admin_user), client_user)
    assert response.status_code == 200
    contract = response.json()
    assert contract["status"] == "draft"
    assert contract["zoho_request_id"] is None
    assert contract["file_url"].startswith(f"{client_user.id}/")
    assert contract["file_url"].endswith("-Service_Agreement.pdf")
    assert (config.CONTRACTS_BUCKET, contract["file_url"]) in fake_storage.objects

    # Drafts are not shown to the client
    assert client.get("/contracts", headers=headers_for(client_user)).json() == []


def test_upload_with_provider_moves_to_sent(client, admin_user, client_user, headers_for, sign_client):
    contract = _upload(client, headers_for(admin_user), client_user).json()
    assert contract["status"] == "sent"
    assert contract["zoho_request_id"] == "req-1"
    assert sign_client.created[0]["email"] == "client@example.com"

    listed = client.get("/contracts", headers=headers_for(client_user)).json()
    assert [c["id"] for c in listed] == [contract["id"]]


def test_upload_resolves_client_by_email(client, admin_user, client_user, headers_for):
    response = client.post(
        "/admin/contracts/upload",
        data={"title": "NDA", "client_email": "CLIENT@example.com"},
        files={"file": ("nda.pdf", PDF_BYTES, "application/pdf")},
        headers=headers_for(admin_user),
    )
    assert response.json()["client_user_id"] == client_user.id


def test_upload_validation(client, admin_user, client_user, headers_for):
    headers = headers_for(admin_user)
    no_client = client.post(
        "/admin/contracts/upload",
        data={"title": "NDA"},
        files={"file": ("nda.pdf", PDF_BYTES, "application/pdf")},
        headers=headers,
    )
    assert no_client.status_code == 400

    unknown = client.post(
        "/admin/contracts/upload",
        data={"title": "NDA", "client_email": "ghost@example.com"},
        files={"file": ("nda.pdf", PDF_BYTES, "application/pdf")},
        headers=headers,
    )
    assert unknown.status_code == 404

    no_title = client.post(
        "/admin/contracts/upload",
        data={"client_user_id": client_user.id},
        files={"file": ("nda.pdf", PDF_BYTES, "application/pdf")},
        headers=headers,
    )
    assert no_title.status_code == 400

    as_client = _upload(client, headers_for(client_user), client_user)
    assert as_client.status_code == 403


def test_admin_list_and_delete(client, admin_user, client_user, headers_for, draft_contract, fake_storage):
    headers = headers_for(admin_user)
    listed = client.get("/admin/contracts", headers=headers).json()
    assert listed[0]["client_email"] == "client@example.com"
    assert listed[0]["client_name"] == "Casey Client"

    deleted = client.delete(f"/admin/contracts/{draft_contract['id']}", headers=headers)
    assert deleted.json() == {"ok": True}
    assert fake_storage.objects == {}
    assert client.get("/admin/contracts", headers=headers).json() == []


# ============================================================================
# Embedded signing
# ============================================================================


def test_start_sign_creates_request_and_returns_url(client, db, client_user, headers_for, draft_contract, sign_client):
    headers = headers_for(client_user)
    response = client.post(f"/contracts/{draft_contract['id']}/start-sign", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"url": "https://sign.zoho.test/embed/req-1", "request_id": "req-1"}
    assert sign_client.submitted == ["req-1"]
    assert sign_client.created[0]["filename"].endswith(".pdf")

    contract = db.get(Contract, draft_contract["id"])
    assert contract.status == "sent"
    assert contract.zoho_sign_url == "https://sign.zoho.test/embed/req-1"

    again = client.post(f"/contracts/{draft_contract['id']}/start-sign", headers=headers)
    assert again.json()["url"] == "https://sign.zoho.test/embed/req-1"
    assert len(sign_client.created) == 1


def test_start_sign_embed_host_prefers_configuration(client, client_user, headers_for, draft_contract, sign_client, monkeypatch):
    monkeypatch.setattr(config, "SIGN_EMBED_HOST", "https://portal.example.com")
    client.post(
        f"/contracts/{draft_contract['id']}/start-sign",
        headers={**headers_for(client_user), "Origin": "https://elsewhere.example.com"},
    )
    assert sign_client.embed_hosts == ["https://portal.example.com"]


def test_start_sign_without_embed_url_returns_202(client, client_user, headers_for, draft_contract, sign_client):
    sign_client.embed_url = None
    response = client.post(f"/contracts/{draft_contract['id']}/start-sign", headers=headers_for(client_user))
    assert response.status_code == 202
    body = response.json()
    assert body["request_id"] == "req-1"
    assert body["error"] and body["hint"]


def test_start_sign_rejects_non_pdf(client, admin_user, client_user, headers_for, sign_client):
    sign_client.available = False
    contract = _upload(client, headers_for(admin_user), client_user, data=b"PK\x03\x04 docx", name="c.docx").json()

    response = client.post(f"/contracts/{contract['id']}/start-sign", headers=headers_for(client_user))
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert "PDF" in detail["error"]
    assert detail["hint"]
    assert sign_client.created == []


def test_start_sign_rejects_encrypted_pdf(client, admin_user, client_user, headers_for, sign_client):
    sign_client.available = False
    encrypted = b"%PDF-1.6\ntrailer << /Encrypt 5 0 R >>"
    contract = _upload(client, headers_for(admin_user), client_user, data=encrypted).json()

    response = client.post(f"/contracts/{contract['id']}/start-sign", headers=headers_for(client_user))
    assert response.status_code == 400
    assert "Encrypted" in response.json()["detail"]["error"]


def test_start_sign_access_rules(client, make_user, headers_for, draft_contract, sign_client):
    stranger = make_user(email="stranger@example.com")
    forbidden = client.post(f"/contracts/{draft_contract['id']}/start-sign", headers=headers_for(stranger))
    assert forbidden.status_code == 403

    missing = client.post("/contracts/does-not-exist/start-sign", headers=headers_for(stranger))
    assert missing.status_code == 404


def test_start_sign_passes_through_credit_errors(client, client_user, headers_for, draft_contract, sign_client):
    async def no_credits(request_id):
        raise ZohoSignError("Zoho Sign API credits required to submit requests", status_code=402, code=12000)

    sign_client.submit_request = no_credits
    response = client.post(f"/contracts/{draft_contract['id']}/start-sign", headers=headers_for(client_user))
    assert response.status_code == 402


def test_admin_link_zoho(client, admin_user, headers_for, draft_contract, sign_client):
    response = client.post(f"/admin/contracts/{draft_contract['id']}/link-zoho", headers=headers_for(admin_user))
    assert response.status_code == 200
    assert response.json()["request_id"] == "req-1"


def test_sign_url_requires_a_request(client, client_user, headers_for, draft_contract, sign_client):
    headers = headers_for(client_user)
    assert client.get(f"/contracts/{draft_contract['id']}/sign-url", headers=headers).status_code == 404

    client.post(f"/contracts/{draft_contract['id']}/start-sign", headers=headers)
    response = client.get(f"/contracts/{draft_contract['id']}/sign-url", headers=headers)
    assert response.json() == {"url": "https://sign.zoho.test/embed/req-1"}


# ============================================================================
# Completion: webhook, polling and manual signature
# ============================================================================


def _sent_contract(client, client_user, headers_for, contract):
    client.post(f"/contracts/{contract['id']}/start-sign", headers=headers_for(client_user))
    return contract["id"]


def test_webhook_completion_stores_signed_pdf(client, db, client_user, headers_for, draft_contract, sign_client, fake_storage):
    contract_id = _sent_contract(client, client_user, headers_for, draft_contract)
    payload = {"event": "REQUEST_COMPLETED", "data": {"request_id": "req-1"}}

    response = client.post("/zoho-sign/webhook", json=payload)
    assert response.status_code == 200
    assert response.json()["signed_file_stored"] is True

    contract = db.get(Contract, contract_id)
    assert contract.status == "signed"
    assert contract.signed_at is not None
    assert contract.zoho_document_id == "doc-9"
    assert contract.signed_file_url == f"signed/{contract_id}.pdf"
    assert fake_storage.objects[(config.SIGNED_CONTRACTS_BUCKET, f"signed/{contract_id}.pdf")] == SIGNED_PDF

    repeat = client.post("/zoho-sign/webhook", json=payload)
    assert repeat.json()["message"] == "Contract already signed"

    download = client.get(f"/contracts/{contract_id}/download", headers=headers_for(client_user)).json()
    assert download["expires_in"] == 1800
    assert f"signed/{contract_id}.pdf" in download["url"]


def test_webhook_reads_payload_envelope(client, db, client_user, headers_for, draft_contract, sign_client):
    contract_id = _sent_contract(client, client_user, headers_for, draft_contract)
    payload = {"event": "REQUEST_COMPLETED", "payload": {"request_id": "req-1"}}

    response = client.post("/zoho-sign/webhook", json=payload)
    assert response.status_code == 200
    assert db.get(Contract, contract_id).status == "signed"


def test_webhook_reads_zoho_notification_shape(client, db, client_user, headers_for, draft_contract, sign_client):
    contract_id = _sent_contract(client, client_user, headers_for, draft_contract)
    payload = {
        "notifications": {"operation_type": "RequestCompleted"},
        "requests": {"request_id": "req-1", "request_status": "completed"},
    }
    assert client.post("/zoho-sign/webhook", json=payload).status_code == 200
    assert db.get(Contract, contract_id).status == "signed"


def test_webhook_edge_cases(client, client_user, headers_for, draft_contract, sign_client):
    _sent_contract(client, client_user, headers_for, draft_contract)

    ignored = client.post("/zoho-sign/webhook", json={"event": "RequestViewed", "request_id": "req-1"})
    assert ignored.json() == {"ok": True, "message": "Event ignored"}

    no_request = client.post("/zoho-sign/webhook", json={"event": "REQUEST_COMPLETED"})
    assert no_request.status_code == 400

    unknown = client.post("/zoho-sign/webhook", json={"event": "REQUEST_COMPLETED", "request_id": "other"})
    assert unknown.status_code == 404

    invalid = client.post("/zoho-sign/webhook", content=b"{not json")
    assert invalid.status_code == 400


def test_webhook_signature_enforced_when_secret_set(client, client_user, headers_for, draft_contract, sign_client, monkeypatch):
    _sent_contract(client, client_user, headers_for, draft_contract)
    monkeypatch.setattr(config, "ZOHO_SIGN_WEBHOOK_SECRET", "sign-secret")
    body = json.dumps({"event": "REQUEST_COMPLETED", "request_id": "req-1"}).encode()

    rejected = client.post("/zoho-sign/webhook", content=body, headers={"x-zoho-sign-signature": "bad"})
    assert rejected.status_code == 401

    signature = hmac.new(b"sign-secret", body, hashlib.sha256).hexdigest()
    accepted = client.post(
        "/zoho-sign/webhook", content=body, headers={"x-signature": f"sha256={signature}"}
    )
    assert accepted.status_code == 200


def test_status_polling_completes_or_declines(client, db, admin_user, client_user, headers_for, sign_client):
    admin_headers = headers_for(admin_user)
    first = _upload(client, admin_headers, client_user).json()
    second = _upload(client, admin_headers, client_user).json()
    headers = headers_for(client_user)

    sign_client.request_status = "completed"
    status = client.get(f"/contracts/{first['id']}/status", headers=headers).json()
    assert status == {"status": "signed", "provider_status": "completed"}

    sign_client.request_status = "declined"
    status = client.get(f"/contracts/{second['id']}/status", headers=headers).json()
    assert status == {"status": "declined", "provider_status": "declined"}

    # Declined contracts are no longer listed for the client
    listed = client.get("/contracts", headers=headers).json()
    assert [c["id"] for c in listed] == [first["id"]]


def test_status_without_request_reports_local_state(client, client_user, headers_for, draft_contract):
    response = client.get(f"/contracts/{draft_contract['id']}/status", headers=headers_for(client_user))
    assert response.json() == {"status": "draft", "provider_status": None}


def test_status_keeps_local_state_when_provider_fails(client, client_user, headers_for, draft_contract, sign_client):
    contract_id = _sent_contract(client, client_user, headers_for, draft_contract)

    async def expired_token(request_id):
        raise ZohoSignError("INVALID_OAUTHTOKEN", status_code=401)

    sign_client.get_request = expired_token
    response = client.get(f"/contracts/{contract_id}/status", headers=headers_for(client_user))
    assert response.status_code == 200
    assert response.json() == {"status": "sent", "provider_status": None}


def test_start_sign_maps_provider_rejection_to_bad_gateway(client, client_user, headers_for, draft_contract, sign_client):
    async def rejected(*args, **kwargs):
        raise ZohoSignError("INVALID_OAUTHTOKEN", status_code=401)

    sign_client.create_request = rejected
    response = client.post(f"/contracts/{draft_contract['id']}/start-sign", headers=headers_for(client_user))
    assert response.status_code == 502
    assert "INVALID_OAUTHTOKEN" in response.json()["detail"]


def test_download_before_signing_is_404(client, client_user, headers_for, draft_contract):
    response = client.get(f"/contracts/{draft_contract['id']}/download", headers=headers_for(client_user))
    assert response.status_code == 404

    original = client.get(f"/contracts/{draft_contract['id']}/url", headers=headers_for(client_user)).json()
    assert original["expires_in"] == 900


def test_manual_signature(client, db, admin_user, client_user, headers_for, draft_contract, fake_storage):
    url = f"/contracts/{draft_contract['id']}/sign"

    bad = client.post(url, json={"signature": "data:image/jpeg;base64,AAAA"}, headers=headers_for(client_user))
    assert bad.status_code == 400

    not_owner = client.post(url, json={"signature": PNG_DATA_URL}, headers=headers_for(admin_user))
    assert not_owner.status_code == 403

    signed = client.post(url, json={"signature": PNG_DATA_URL}, headers=headers_for(client_user))
    assert signed.status_code == 200
    assert signed.json()["status"] == "signed"

    key = f"signatures/{draft_contract['id']}.png"
    assert fake_storage.objects[(config.SIGNED_CONTRACTS_BUCKET, key)].startswith(b"\x89PNG")
    assert db.get(Contract, draft_contract["id"]).signature_image_url == key

    again = client.post(url, json={"signature": PNG_DATA_URL}, headers=headers_for(client_user))
    assert again.status_code == 409


def test_infer_embed_host_order(monkeypatch):
    monkeypatch.setattr(config, "SIGN_EMBED_HOST", None)
    monkeypatch.setattr(config, "SITE_URL", None)
    infer = contract_service.infer_embed_host

    assert infer("https://app.example.com", "api.example.com", None) == "https://app.example.com"
    assert infer(None, "localhost:3000", None) == "http://localhost:3000"
    assert infer(None, "api.example.com", None) == "https://api.example.com"
    assert infer(None, "api.example.com", "http") == "http://api.example.com"
    assert infer(None, None, None) is None

    monkeypatch.setattr(config, "SITE_URL", "https://site.example.com")
    assert infer("https://app.example.com", "api.example.com", None) == "https://site.example.com"


def test_webhook_event_helpers():
    assert contract_service.is_completion_event("REQUEST_COMPLETED")
    assert contract_service.is_completion_event("document_signed")
    assert contract_service.is_completion_event("RequestCompleted")
    assert not contract_service.is_completion_event("RequestViewed")

    event, request_id, document_id = contract_service.extract_webhook_ids(
        {"type": "x", "body": {"requests": {"request_id": 42, "document_id": "d1"}}}
    )
    assert (event, request_id, document_id) == ("x", "42", "d1")
