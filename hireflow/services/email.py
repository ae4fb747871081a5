from __future__ import annotations

import base64
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any

import anyio
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.core.config import settings
from hireflow.core.paths import package_root, resolve_repo_path
from hireflow.services.events import log_event


def _gmail_client(sender_email: str):
    scopes = ["https://www.googleapis.com/auth/gmail.send"]
    service_account_path = settings.google_application_credentials
    if not service_account_path:
        raise RuntimeError("Missing service account credentials for Gmail.")
    credentials = Credentials.from_service_account_file(str(resolve_repo_path(service_account_path)), scopes=scopes)
    credentials = credentials.with_subject(sender_email)
    return build("gmail", "v1", credentials=credentials, cache_discovery=False)


def _template_path(name: str) -> Path:
    return package_root() / "templates" / "email" / f"{name}.html"


def render_template(name: str, context: dict[str, Any]) -> str:
    raw = _template_path(name).read_text(encoding="utf-8")
    return raw.format_map({k: ("" if v is None else v) for k, v in context.items()})


def _send_raw(sender: str, raw: str) -> None:
    service = _gmail_client(sender)
    service.users().messages().send(userId=sender, body={"raw": raw}).execute()


async def send_email(
    session: AsyncSession,
    *,
    to_emails: list[str],
    subject: str,
    template_name: str,
    context: dict[str, Any],
    email_type: str,
    entity_type: str,
    entity_id: int | None,
    company_id: int | None = None,
    cc_emails: list[str] | None = None,
    meta_extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    meta: dict[str, Any] = {
        "to": to_emails,
        "cc": cc_emails or [],
        "subject": subject,
        "template": template_name,
        "email_type": email_type,
    }
    if meta_extra:
        meta.update(meta_extra)

    if not to_emails:
        meta["status"] = "skipped"
        meta["reason"] = "missing_recipient"
    elif not settings.enable_gmail:
        meta["status"] = "skipped"
        meta["reason"] = "gmail_disabled"
    else:
        html = render_template(template_name, context)
        sender = settings.gmail_sender_email
        msg = MIMEText(html, "html", "utf-8")
        msg["To"] = ", ".join(to_emails)
        if cc_emails:
            msg["Cc"] = ", ".join(cc_emails)
        msg["From"] = f"{settings.gmail_sender_name} <{sender}>"
        msg["Reply-To"] = sender
        msg["Subject"] = subject

        raw = base64.urlsafe_b64encode(msg.as_bytes()).decode("utf-8")
        try:
            await anyio.to_thread.run_sync(_send_raw, sender, raw)
            meta["status"] = "sent"
        except Exception as exc:  # noqa: BLE001
            meta["status"] = "failed"
            meta["error"] = str(exc)

    await log_event(
        session,
        entity_type=entity_type,
        entity_id=entity_id,
        company_id=company_id,
        action_type="email_sent",
        meta_json=meta,
    )
    return meta
