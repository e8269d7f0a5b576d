from datetime import timedelta

import pytest

from portal.domain.auth import service as auth_service
from portal.domain.auth.service import resolve_landing_route
from portal.models import EmailOtp, User, utcnow
from portal.security_utils import verify_password

from conftest import PASSWORD


@pytest.fixture()
def fixed_otp(monkeypatch):
    monkeypatch.setattr(auth_service, "generate_otp", lambda: "123456")
    return "123456"


def _signup(client, email="new@example.com", password="N3w!Password", metadata=None):
    return client.post(
        "/auth/signup", json={"email": email, "password": password, "metadata": metadata or {}}
    )


def test_signup_verify_and_login(client, db, fixed_otp, sent_emails):
    response = _signup(client, metadata={"full_name": "Nia New", "company_name": "Acme <Ltd>"})
    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert sent_emails[0]["to"] == "new@example.com"
    assert fixed_otp in sent_emails[0]["body"]

    # Unverified accounts cannot log in yet
    blocked = client.post("/auth/login", json={"email": "new@example.com", "password": "N3w!Password"})
    assert blocked.status_code == 403

    verified = client.post("/auth/verify-otp", json={"email": "NEW@example.com", "code": 123456})
    assert verified.status_code == 200

    user = db.query(User).filter(User.email == "new@example.com").one()
    assert user.email_verified is True
    assert user.full_name == "Nia New"
    assert user.company_name == "Acme &lt;Ltd&gt;"
    assert user.role == "client"

    login = client.post("/auth/login", json={"email": "new@example.com", "password": "N3w!Password"})
    assert login.status_code == 200
    body = login.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "new@example.com"

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == user.id


def test_signup_metadata_cannot_grant_admin(client, db, fixed_otp):
    _signup(client, metadata={"role": "admin", "full_name": "Sneaky"})
    client.post("/auth/verify-otp", json={"email": "new@example.com", "code": fixed_otp})

    user = db.query(User).filter(User.email == "new@example.com").one()
    assert user.role == "client"
    assert user.full_name == "Sneaky"


def test_signup_metadata_keeps_only_text_profile_fields(client, db, fixed_otp):
    _signup(
        client,
        metadata={"full_name": "Nia New", "phone": 5551234, "address": {"street": "1 Main"}, "company_name": None},
    )
    verified = client.post("/auth/verify-otp", json={"email": "new@example.com", "code": fixed_otp})
    assert verified.status_code == 200

    user = db.query(User).filter(User.email == "new@example.com").one()
    assert user.full_name == "Nia New"
    assert user.phone == "5551234"
    assert user.address is None
    assert user.company_name is None


def test_signup_validation(client, make_user):
    assert _signup(client, email="").status_code == 400
    weak = _signup(client, password="weak")
    assert weak.status_code == 400
    assert "Password must be" in weak.json()["detail"]

    make_user(email="taken@example.com")
    taken = _signup(client, email="taken@example.com")
    assert taken.status_code == 400


def test_re_signup_before_verification_replaces_code(client, db, monkeypatch):
    codes = iter(["111111", "222222"])
    monkeypatch.setattr(auth_service, "generate_otp", lambda: next(codes))

    _signup(client)
    _signup(client, password="An0ther!Pass")

    stale = client.post("/auth/verify-otp", json={"email": "new@example.com", "code": "111111"})
    assert stale.status_code == 400

    fresh = client.post("/auth/verify-otp", json={"email": "new@example.com", "code": "222222"})
    assert fresh.status_code == 200

    user = db.query(User).filter(User.email == "new@example.com").one()
    assert verify_password("An0ther!Pass", user.password_hash)


def test_wrong_codes_exhaust_attempts(client, fixed_otp):
    _signup(client)
    for _ in range(auth_service.MAX_OTP_ATTEMPTS):
        wrong = client.post("/auth/verify-otp", json={"email": "new@example.com", "code": "000000"})
        assert wrong.json()["detail"] == "Invalid code"

    locked = client.post("/auth/verify-otp", json={"email": "new@example.com", "code": fixed_otp})
    assert locked.status_code == 400
    assert locked.json()["detail"] == "Too many attempts, request a new code"


def test_expired_code_is_rejected(client, db, fixed_otp):
    _signup(client)
    otp = db.query(EmailOtp).filter(EmailOtp.email == "new@example.com").one()
    otp.expires_at = utcnow() - timedelta(minutes=1)
    db.commit()

    response = client.post("/auth/verify-otp", json={"email": "new@example.com", "code": fixed_otp})
    assert response.status_code == 400
    assert response.json()["detail"] == "OTP expired"


def test_signup_rolls_back_code_when_email_fails(client, db, monkeypatch):
    async def failing_send(*args, **kwargs):
        raise auth_service.EmailSendError("smtp down")

    monkeypatch.setattr(auth_service, "send_email_verification_otp", failing_send)
    response = _signup(client)
    assert response.status_code == 500
    assert db.query(EmailOtp).count() == 0


def test_resend_otp_is_generic(client, fixed_otp, sent_emails):
    unknown = client.post("/auth/resend-otp", json={"email": "ghost@example.com"})
    assert unknown.status_code == 200
    assert sent_emails == []

    _signup(client)
    again = client.post("/auth/resend-otp", json={"email": "new@example.com"})
    assert again.json()["ok"] is True
    assert len(sent_emails) == 2


def test_login_failures(client, make_user):
    make_user(email="c@example.com")
    assert client.post("/auth/login", json={"email": "c@example.com"}).status_code == 400
    wrong = client.post("/auth/login", json={"email": "c@example.com", "password": "Nope!1234"})
    assert wrong.status_code == 401

    make_user(email="s@example.com", suspended=True, suspended_until=utcnow() + timedelta(days=1))
    suspended = client.post("/auth/login", json={"email": "s@example.com", "password": PASSWORD})
    assert suspended.status_code == 403
    assert suspended.json()["detail"] == "Account suspended"


def test_login_clears_lapsed_suspension(client, make_user):
    make_user(email="s@example.com", suspended=True, suspended_until=utcnow() - timedelta(minutes=1))
    response = client.post("/auth/login", json={"email": "s@example.com", "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["user"]["suspended"] is False


def test_password_reset_flow(client, db, make_user, monkeypatch, sent_emails):
    make_user(email="c@example.com")
    monkeypatch.setattr(auth_service, "generate_reset_token", lambda: "reset-token-abc")

    unknown = client.post("/auth/forgot-password", json={"email": "ghost@example.com"})
    known = client.post("/auth/forgot-password", json={"email": "c@example.com"})
    assert unknown.json() == known.json()
    assert len(sent_emails) == 1
    assert "register/forgotpassword?token=reset-token-abc" in sent_emails[0]["body"]

    weak = client.post("/auth/reset-password", json={"token": "reset-token-abc", "newPassword": "weak"})
    assert weak.status_code == 400

    done = client.post(
        "/auth/reset-password", json={"token": "reset-token-abc", "newPassword": "Br4nd!New"}
    )
    assert done.status_code == 200

    reused = client.post(
        "/auth/reset-password", json={"token": "reset-token-abc", "newPassword": "Br4nd!New2"}
    )
    assert reused.status_code == 400

    login = client.post("/auth/login", json={"email": "c@example.com", "password": "Br4nd!New"})
    assert login.status_code == 200


def test_missing_bearer_token_is_401(client):
    assert client.get("/auth/me").status_code in (401, 403)
    bad = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401


class _Visitor:
    def __init__(self, role="client", suspended=False):
        self.role = role
        self.suspended = suspended

    @property
    def is_admin(self):
        return self.role in ("admin", "super_admin")


@pytest.mark.parametrize(
    "path, user, expected",
    [
        ("/mgdashboard", _Visitor(suspended=True), "/suspended"),
        ("/suspended", _Visitor(suspended=True), None),
        ("/", _Visitor(role="admin"), "/admin"),
        ("/mgdashboard/contracts", _Visitor(role="super_admin"), "/admin"),
        ("/mgdashboard", None, "/login"),
        ("/admin/users", None, "/login"),
        ("/auth/callback", None, "/register"),
        ("/register", _Visitor(), "/mgdashboard"),
        ("/admin", _Visitor(), "/mgdashboard"),
        ("/mgdashboard", _Visitor(), None),
        ("/", None, None),
    ],
)
def test_resolve_landing_route(path, user, expected):
    assert resolve_landing_route(path, user) == expected


def test_landing_endpoint_uses_session(client, client_user, headers_for):
    anonymous = client.get("/auth/landing", params={"path": "/mgdashboard"})
    assert anonymous.json() == {"redirect": "/login"}

    signed_in = client.get(
        "/auth/landing", params={"path": "/register"}, headers=headers_for(client_user)
    )
    assert signed_in.json() == {"redirect": "/mgdashboard"}
