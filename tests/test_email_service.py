import pytest
import resend

from portal import config, email_service
from portal.email_templates import email_verification_template

# The suite-wide outbox fixture replaces send_email; keep the real one here
send_email = email_service.send_email


def test_verification_template_compiles_to_html():
    html = email_service.compile_mjml_to_html(email_verification_template("Dana", "482913"))
    assert "<html" in html.lower()
    assert "482913" in html
    assert "Hi Dana," in html


async def test_send_email_posts_compiled_html(monkeypatch):
    sent = []
    monkeypatch.setattr(config, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(resend.Emails, "send", lambda params: sent.append(params) or {"id": "em-1"})

    response = await send_email(
        "dana@example.com", "Your verification code", email_verification_template(None, "111222")
    )

    assert response == {"id": "em-1"}
    assert sent[0]["to"] == ["dana@example.com"]
    assert sent[0]["subject"] == "Your verification code"
    assert "111222" in sent[0]["html"]


async def test_send_email_requires_api_key(monkeypatch):
    monkeypatch.setattr(config, "RESEND_API_KEY", None)
    with pytest.raises(email_service.EmailNotConfiguredError):
        await send_email("dana@example.com", "Hi", "<mjml></mjml>")
