from __future__ import annotations

import html
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Mapping

import anyio

from hireflow.core.config import settings
from hireflow.core.datetime_utils import utcnow_naive
from hireflow.core.outcomes import CollaboratorFailure
from hireflow.core.paths import package_root, resolve_repo_path
from hireflow.services.collaborators import GeneratedDocument, OfferLetterContext

logger = logging.getLogger("hireflow.offer_letters")

DEFAULT_CONDITIONS = (
    "This offer is contingent upon satisfactory background verification and reference checks.",
    "You will be required to comply with company policies, confidentiality and the code of conduct.",
    "This offer remains valid for acceptance as per the timeline communicated by the Talent Acquisition team.",
)

# Rendered in the main table; any other key lands in the extra rows.
PRIMARY_DETAIL_KEYS = frozenset(
    {
        "joining_date",
        "offered_ctc",
        "bonus",
        "probation_months",
        "work_location",
        "offer_notes",
        "conditions",
        "reporting_to",
        "manager_name",
    }
)


def _sanitize_for_file_name(value: str | None) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", str(value or "company").lower()).strip("-")
    return slug[:40] or "company"


def _text(value: Any, fallback: str = "Not specified") -> str:
    if value is None:
        return fallback
    text = str(value).strip()
    return html.escape(text) if text else fallback


def _format_date(value: Any) -> str:
    if not value:
        return "Not specified"
    if isinstance(value, (date, datetime)):
        return value.strftime("%B %d, %Y")
    try:
        return date.fromisoformat(str(value)[:10]).strftime("%B %d, %Y")
    except ValueError:
        return _text(value)


def _format_probation(value: Any) -> str:
    if value in (None, ""):
        return "As per company policy"
    try:
        months = int(value)
    except (TypeError, ValueError):
        return _text(value)
    return f"{months} month(s)" if months > 0 else "As per company policy"


def _label(key: str) -> str:
    return key.replace("_", " ").strip().capitalize()


def build_offer_letter_links(relative_path: str, offer_id: int) -> tuple[str, str]:
    base = (settings.public_base_url or "").rstrip("/")
    document_url = f"{base}{relative_path}"
    return document_url, default_esign_link(document_url, offer_id)


def default_esign_link(document_url: str | None, offer_id: int) -> str | None:
    if not document_url:
        return None
    return f"{document_url}#candidate-esign-{offer_id}"


def render_offer_letter_html(context: OfferLetterContext, *, issued_on: date | None = None) -> str:
    details: Mapping[str, Any] = context.offer_details or {}
    conditions = details.get("conditions")
    if isinstance(conditions, str):
        conditions = [conditions]
    if not conditions:
        conditions = DEFAULT_CONDITIONS
    extra_rows = "".join(
        f'<tr><td class="label">{_text(_label(key))}</td><td>{_text(value)}</td></tr>'
        for key, value in details.items()
        if key not in PRIMARY_DETAIL_KEYS and not isinstance(value, (dict, list))
    )
    template = (package_root() / "templates" / "offers" / "offer_letter.html").read_text(encoding="utf-8")
    return template.format_map(
        {
            "offer_id": context.offer_id,
            "issued_on": _format_date(issued_on or utcnow_naive().date()),
            "company_name": _text(context.company_name, "Company"),
            "candidate_name": _text(context.candidate_name, "Candidate"),
            "job_title": _text(context.job_title),
            "department": _text(context.department),
            "employment_type": _text(context.employment_type),
            "work_location": _text(details.get("work_location"), _text(context.location)),
            "joining_date": _format_date(details.get("joining_date")),
            "offered_ctc": _text(details.get("offered_ctc")),
            "bonus": _text(details.get("bonus"), "As per company policy"),
            "probation": _format_probation(details.get("probation_months")),
            "reporting_to": _text(details.get("reporting_to") or details.get("manager_name"), "your reporting manager"),
            "extra_rows": extra_rows,
            "conditions": "".join(f"<li>{_text(item)}</li>" for item in conditions),
            "offer_notes": _text(details.get("offer_notes"), ""),
        }
    )


def _write_pdf(markup: str, target: Path) -> None:
    from weasyprint import HTML

    HTML(string=markup).write_pdf(str(target))


class OfferLetterGenerator:
    """Renders offer letters to PDF files served from the generated offer-letter route."""

    def __init__(self, output_dir: Path | None = None, route_prefix: str | None = None) -> None:
        self._output_dir = output_dir or resolve_repo_path(settings.offer_letter_dir)
        self._route_prefix = (route_prefix or settings.offer_letter_route).rstrip("/")

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    async def generate_offer_letter(self, context: OfferLetterContext) -> GeneratedDocument:
        stamp = utcnow_naive().strftime("%Y%m%d%H%M%S")
        file_name = f"offer_{context.offer_id}_{_sanitize_for_file_name(context.company_name)}_{stamp}.pdf"
        target = self._output_dir / file_name
        try:
            markup = render_offer_letter_html(context)
            self._output_dir.mkdir(parents=True, exist_ok=True)
            await anyio.to_thread.run_sync(_write_pdf, markup, target)
        except Exception as exc:  # noqa: BLE001
            target.unlink(missing_ok=True)
            raise CollaboratorFailure("Offer letter generation failed") from exc
        document_url, _ = build_offer_letter_links(f"{self._route_prefix}/{file_name}", context.offer_id)
        return GeneratedDocument(document_url=document_url, file_path=target)

    def discard(self, document: GeneratedDocument) -> None:
        try:
            document.file_path.unlink(missing_ok=True)
        except OSError:
            logger.warning("offer_letter_cleanup_failed", extra={"path": str(document.file_path)}, exc_info=True)
