"""
Patient dossier export: demographics plus every session, as a paginated PDF.

The composer keeps its own vertical cursor. Before anything is written
(section title, field line, paragraph line, session bar, footer) it checks
whether the block still fits on the page; if not it opens a new page and
redraws the practitioner header first. Long free-text fields therefore
wrap and continue on the next page mid-field.

Unlike the narrative text, the dossier skips empty fields entirely.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Iterable

from fpdf import FPDF

from psyrecord.reference.catalog import (
    EATING_PATTERNS,
    MEDICATION_STATUSES,
    MODALITIES,
    MOODS,
    SESSION_TYPES,
    SLEEP_PATTERNS,
    THERAPY_APPROACHES,
    TREATMENT_STATUSES,
    label_for,
)
from psyrecord.reference.diagnoses import cid_name, dsm_name, record_label
from psyrecord.services.formatting import (
    compute_age,
    format_cep,
    format_cpf,
    format_date_short,
    format_phone,
    parse_date,
    slugify_name,
)

logger = logging.getLogger(__name__)

RECORD_TITLE = "PSYCHOLOGICAL RECORD"
CONFIDENTIALITY_LINE = (
    "CONFIDENTIAL DOCUMENT - Psychological record under CFP Resolution No. 001/2009"
)


def to_latin1_safe(s: str) -> str:
    """Core PDF fonts only cover latin-1: map smart punctuation, drop the rest."""
    s = (
        (s or "")
        .replace("\u2014", "-")
        .replace("\u2013", "-")
        .replace("\u2018", "'")
        .replace("\u2019", "'")
        .replace("\u201c", '"')
        .replace("\u201d", '"')
        .replace("\u2026", "...")
        .replace("\u00a0", " ")
    )
    return s.encode("latin-1", errors="ignore").decode("latin-1")


def _get(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def chronological(sessions: Iterable[Any]) -> list[Any]:
    """Oldest first, ties broken by time of day."""
    return sorted(
        sessions,
        key=lambda s: (parse_date(_get(s, "date")) or date.min, _get(s, "time") or ""),
    )


def record_filename(patient: Any, today: date | None = None) -> str:
    today = today or date.today()
    return f"record_{slugify_name(_get(patient, 'name'))}_{today.isoformat()}.pdf"


class RecordComposer:
    """Cursor-based A4 layout with page-break checks before every block."""

    margin = 20.0
    line_height = 4.0

    def __init__(self, profile: Any, generated_at: datetime | None = None):
        self.profile = profile
        self.generated_at = generated_at or datetime.now()
        self.pdf = FPDF(orientation="P", unit="mm", format="A4")
        self.pdf.set_auto_page_break(auto=False)
        self.pdf.add_page()
        self.y = self.margin
        self.headers_drawn = 0
        self.session_headings: list[str] = []
        self.add_header()

    # ------------------------------------------------------------------
    # Geometry and primitives
    # ------------------------------------------------------------------
    @property
    def page_width(self) -> float:
        return self.pdf.w

    @property
    def page_height(self) -> float:
        return self.pdf.h

    @property
    def content_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def page_count(self) -> int:
        return self.pdf.page_no()

    def _font(self, style: str = "", size: float = 9) -> None:
        self.pdf.set_font("helvetica", style=style, size=size)

    def _text(self, x: float, text: str) -> None:
        self.pdf.text(x, self.y, to_latin1_safe(text))

    def _centered(self, text: str) -> None:
        text = to_latin1_safe(text)
        width = self.pdf.get_string_width(text)
        self.pdf.text((self.page_width - width) / 2, self.y, text)

    def split_text(self, text: str, width: float) -> list[str]:
        """Lines ``multi_cell`` would print for ``text`` within ``width``, current font."""
        lines = self.pdf.multi_cell(
            width + 2 * self.pdf.c_margin,
            self.line_height,
            to_latin1_safe(text),
            dry_run=True,
            output="LINES",
        )
        return lines or [""]

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------
    def add_header(self) -> None:
        self._font("B", 14)
        self._centered(_get(self.profile, "full_name") or "")
        self.y += 6

        self._font("", 10)
        self._centered(f"Psychologist - registration (CRP): {_get(self.profile, 'crp') or ''}")
        self.y += 4

        phone = _get(self.profile, "phone")
        contact = [c for c in (format_phone(phone) if phone else None, _get(self.profile, "email")) if c]
        if contact:
            self._centered(" | ".join(contact))
            self.y += 4

        self.y += 2
        self.pdf.set_draw_color(200)
        self.pdf.line(self.margin, self.y, self.page_width - self.margin, self.y)
        self.y += 8
        self.headers_drawn += 1

    def check_page_break(self, needed: float) -> None:
        if self.y + needed > self.page_height - self.margin:
            self.pdf.add_page()
            self.y = self.margin
            self.add_header()

    def add_title(self, title: str) -> None:
        self.check_page_break(12)
        self._font("B", 16)
        self._centered(title)
        self.y += 10

    def add_section(self, title: str) -> None:
        self.check_page_break(15)
        self._font("B", 12)
        self.pdf.set_text_color(60, 60, 60)
        self._text(self.margin, title)
        self.y += 6
        self.pdf.set_text_color(0, 0, 0)

    def add_field(self, label: str, value: Any) -> None:
        if value is None or value == "" or value == []:
            return
        self.check_page_break(8)
        label_text = to_latin1_safe(f"{label}: ")
        self._font("B", 9)
        self._text(self.margin, label_text)
        label_width = self.pdf.get_string_width(label_text)

        self._font("", 9)
        lines = self.split_text(str(value), self.content_width - label_width)
        self._text(self.margin + label_width, lines[0])
        for line in lines[1:]:
            self.y += self.line_height
            self.check_page_break(self.line_height)
            self._font("", 9)
            self._text(self.margin, line)
        self.y += 5

    def add_paragraph(self, text: str) -> None:
        self.check_page_break(10)
        self._font("", 9)
        for line in self.split_text(text, self.content_width):
            self.check_page_break(self.line_height)
            self._font("", 9)
            self._text(self.margin, line)
            self.y += self.line_height
        self.y += 2

    def add_session_bar(self, heading: str) -> None:
        self.check_page_break(30)
        self.pdf.set_fill_color(240, 240, 240)
        self.pdf.rect(self.margin, self.y - 4, self.content_width, 8, style="F")
        self._font("B", 10)
        self._text(self.margin + 2, heading)
        self.y += 8
        self.session_headings.append(heading)

    def add_footer(self) -> None:
        self.check_page_break(40)
        self.y += 10
        self.pdf.set_draw_color(150)
        self.pdf.line(self.margin + 30, self.y, self.page_width - self.margin - 30, self.y)
        self.y += 5
        self._font("", 10)
        self._centered(_get(self.profile, "full_name") or "")
        self.y += 4
        self._centered(f"CRP: {_get(self.profile, 'crp') or ''}")
        self.y += 8
        self._font("", 8)
        self.pdf.set_text_color(100)
        self._centered(
            f"Document generated on {self.generated_at.strftime('%d/%m/%Y')} "
            f"at {self.generated_at.strftime('%H:%M:%S')}"
        )
        self.y += 4
        self._centered(CONFIDENTIALITY_LINE)
        self.pdf.set_text_color(0, 0, 0)

    def output(self) -> bytes:
        return bytes(self.pdf.output())

    # ------------------------------------------------------------------
    # Dossier
    # ------------------------------------------------------------------
    def add_patient(self, patient: Any) -> None:
        self.add_section("PATIENT DATA")
        self.add_field("Name", _get(patient, "name"))
        self.add_field("CPF", format_cpf(_get(patient, "cpf")))
        birth = _get(patient, "birth_date")
        if birth:
            self.add_field(
                "Birth date", f"{format_date_short(birth)} ({compute_age(birth)} years)"
            )
        self.add_field("Status", label_for(_get(patient, "current_status"), TREATMENT_STATUSES))
        if _get(patient, "phone"):
            self.add_field("Phone", format_phone(_get(patient, "phone")))
        self.add_field("E-mail", _get(patient, "email"))
        self.add_field("Profession", _get(patient, "profession"))
        if _get(patient, "address") or _get(patient, "city"):
            zip_code = _get(patient, "zip_code")
            address = [
                _get(patient, "address"),
                _get(patient, "city"),
                _get(patient, "state"),
                format_cep(zip_code) if zip_code else None,
            ]
            self.add_field("Address", ", ".join(a for a in address if a))

        if _get(patient, "is_minor") and _get(patient, "guardian_name"):
            self.y += 4
            self.add_section("LEGAL GUARDIAN")
            self.add_field("Name", _get(patient, "guardian_name"))
            if _get(patient, "guardian_cpf"):
                self.add_field("CPF", format_cpf(_get(patient, "guardian_cpf")))
            self.add_field("Relationship", _get(patient, "guardian_relationship"))
            if _get(patient, "guardian_phone"):
                self.add_field("Phone", format_phone(_get(patient, "guardian_phone")))

    def add_session(self, number: int, session: Any) -> None:
        session_type = _get(session, "session_type")
        type_label = label_for(session_type, SESSION_TYPES) or ""
        self.add_session_bar(
            f"Session {number} - {format_date_short(_get(session, 'date'))} - {type_label}"
        )

        duration = _get(session, "duration_minutes")
        self.add_field("Time", _get(session, "time"))
        self.add_field("Duration", f"{duration} minutes" if duration else None)
        self.add_field("Modality", label_for(_get(session, "modality"), MODALITIES))
        self.add_field("Approach", label_for(_get(session, "approach"), THERAPY_APPROACHES))
        self.add_field("Techniques", ", ".join(_get(session, "techniques") or []))
        self.add_field("Topics", ", ".join(_get(session, "topics") or []))
        self.add_field(
            "Mood", ", ".join(label_for(m, MOODS) for m in _get(session, "mood") or [] if m)
        )
        self.add_field("Sleep pattern", label_for(_get(session, "sleep_pattern"), SLEEP_PATTERNS))
        self.add_field("Eating", label_for(_get(session, "eating"), EATING_PATTERNS))
        self.add_field(
            "Medication", label_for(_get(session, "medication_status"), MEDICATION_STATUSES)
        )
        self.add_field("New medication", _get(session, "medication_new"))

        if session_type == "intake":
            self.add_field("Main complaint", _get(session, "main_complaint"))
            self.add_field("Complaint history", _get(session, "complaint_history"))
            self.add_field("Relevant history", _get(session, "relevant_history"))
            self.add_field("Therapeutic goals", _get(session, "therapeutic_goals"))
            self.add_field("Treatment plan", _get(session, "treatment_plan"))

        self.add_field("Clinical observations", _get(session, "clinical_observations"))
        self.add_field("Clinical hypotheses", _get(session, "clinical_hypotheses"))
        self.add_field("Observed progress", _get(session, "observed_progress"))
        self.add_field("Interventions", _get(session, "interventions"))

        self.add_field(
            "DSM-5-TR diagnosis",
            "; ".join(record_label(c, dsm_name) for c in _get(session, "dsm_diagnosis") or []),
        )
        self.add_field(
            "CID-10 diagnosis",
            "; ".join(record_label(c, cid_name) for c in _get(session, "cid_diagnosis") or []),
        )

        if _get(session, "referral_needed"):
            self.add_field("Referral", _get(session, "referral_to") or "Yes")
            self.add_field("Referral reason", _get(session, "referral_reason"))

        self.add_field("Notes", _get(session, "notes"))
        self.y += 6


def compose_patient_record(
    profile: Any,
    patient: Any,
    sessions: Iterable[Any],
    generated_at: datetime | None = None,
) -> RecordComposer:
    """Lay out the full dossier; sessions are written oldest first."""
    ordered = chronological(sessions)
    composer = RecordComposer(profile, generated_at=generated_at)
    composer.add_title(RECORD_TITLE)
    composer.add_patient(patient)

    composer.y += 6
    composer.add_section("ATTENDANCE HISTORY")
    composer.add_paragraph(f"Total sessions recorded: {len(ordered)}")
    composer.y += 4
    for number, session in enumerate(ordered, start=1):
        composer.add_session(number, session)

    composer.add_footer()
    logger.info(
        "Composed record for patient %s: %d sessions, %d pages",
        _get(patient, "id"),
        len(ordered),
        composer.page_count,
    )
    return composer


def export_patient_record(
    profile: Any,
    patient: Any,
    sessions: Iterable[Any],
    generated_at: datetime | None = None,
) -> bytes:
    return compose_patient_record(profile, patient, sessions, generated_at).output()
