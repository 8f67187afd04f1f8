"""
Submission planning and the downstream submitter used by the application worker.

A submission plan maps the fields of an application form onto the applicant's
details. Form fields are resolved through a synonym table so that "first_name",
"givenName" and "First Name" all pick up the applicant's first name.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Union
import logging
import re
import time

from job_autopilot.errors import SubmissionError
from .models import Application, JobPosting


FIELD_TYPES = {"text", "textarea", "select", "checkbox", "file", "email", "tel"}

FIELD_SYNONYMS = {
    "firstName": ["first_name", "firstname", "givenName"],
    "lastName": ["last_name", "lastname", "surname"],
    "email": ["email", "email_address", "emailAddress"],
    "phone": ["phone", "phone_number", "telephone"],
    "location": ["location", "city", "address"],
    "resume": ["resume", "cv", "resume_upload"],
    "coverLetter": ["cover_letter", "coverletter", "motivation"],
    "linkedin": ["linkedin", "linkedin_profile"],
    "github": ["github", "github_profile"],
    "portfolio": ["portfolio", "website"],
}


def _squash(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())


@dataclass
class FormField:
    """A single field on an application form."""
    name: str
    label: str = ""
    type: str = "text"
    required: bool = False

    def __post_init__(self):
        if self.type not in FIELD_TYPES:
            raise ValueError(f"Unsupported form field type: {self.type}")


@dataclass
class ApplicationForm:
    """An application form discovered for a posting."""
    url: str
    fields: list[FormField] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ApplicationForm":
        return cls(
            url=data["url"],
            fields=[FormField(**item) for item in data.get("fields", [])],
        )


@dataclass
class ApplicantDetails:
    """Applicant information used to fill application forms."""
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    location: Optional[str] = None
    resume_url: Optional[str] = None
    cover_letter: Optional[str] = None
    links: dict[str, str] = field(default_factory=dict)
    answers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "ApplicantDetails":
        return cls(
            first_name=data["first_name"],
            last_name=data["last_name"],
            email=data["email"],
            phone=data.get("phone"),
            location=data.get("location"),
            resume_url=data.get("resume_url"),
            cover_letter=data.get("cover_letter"),
            links=dict(data.get("links", {})),
            answers=dict(data.get("answers", {})),
        )


@dataclass
class SubmissionPlan:
    """Resolved values for every form field we can fill."""
    url: str
    field_values: dict[str, Union[str, bool]] = field(default_factory=dict)
    file_uploads: dict[str, str] = field(default_factory=dict)
    missing_required_fields: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.missing_required_fields


def resolve_field_key(form_field: FormField) -> str:
    """Resolve a form field onto a canonical applicant attribute."""
    normalized = _squash(form_field.name or form_field.label)

    for key, synonyms in FIELD_SYNONYMS.items():
        if _squash(key) == normalized or any(_squash(item) == normalized for item in synonyms):
            return key

    return normalized


def _field_value(key: str, applicant: ApplicantDetails) -> Optional[str]:
    values = {
        "firstName": applicant.first_name,
        "lastName": applicant.last_name,
        "email": applicant.email,
        "phone": applicant.phone,
        "location": applicant.location,
        "coverLetter": applicant.cover_letter,
        "linkedin": applicant.links.get("linkedin"),
        "github": applicant.links.get("github"),
        "portfolio": applicant.links.get("portfolio"),
    }
    if key in values:
        return values[key]
    return applicant.answers.get(key)


def build_submission_plan(form: ApplicationForm, applicant: ApplicantDetails) -> SubmissionPlan:
    """
    Map an application form onto an applicant's details.

    Args:
        form: Application form with its fields
        applicant: Applicant details

    Returns:
        SubmissionPlan with field values, file uploads and missing required fields
    """
    plan = SubmissionPlan(url=form.url)

    for form_field in form.fields:
        key = resolve_field_key(form_field)

        if form_field.type == "file":
            if "resume" in key.lower() and applicant.resume_url:
                plan.file_uploads[form_field.name] = applicant.resume_url
            elif "cover" in key.lower() and applicant.cover_letter:
                plan.file_uploads[form_field.name] = applicant.cover_letter
            elif form_field.required:
                plan.missing_required_fields.append(form_field.name)
            continue

        value = _field_value(key, applicant)
        if isinstance(value, bool) or value:
            plan.field_values[form_field.name] = value
        elif form_field.required:
            plan.missing_required_fields.append(form_field.name)

    return plan


class SimulatedSubmitter:
    """
    Default downstream submitter.

    Waits out an artificial submission latency. When the posting carries an
    application form in its scraper metadata and applicant details are known,
    a submission plan is built first and incomplete plans are rejected.

    Board result cards carry no application form, so the board scrapers never
    set one. The form is written under scraper_metadata["form"] (the shape
    ApplicationForm.from_dict() reads) by a separate enrichment step that
    visits the apply page. Postings without it are submitted without a plan.
    """

    def __init__(
        self,
        latency_seconds: float = 1.5,
        applicant_lookup: Optional[Callable[[str], Optional[ApplicantDetails]]] = None,
    ):
        self.latency_seconds = latency_seconds
        self.applicant_lookup = applicant_lookup or (lambda user_id: None)
        self.logger = logging.getLogger(self.__class__.__name__)

    def submit(self, application: Application, posting: JobPosting) -> dict:
        """
        Submit an application.

        Returns:
            Metadata recorded on the SUBMITTED event

        Raises:
            SubmissionError: if the application form cannot be completed
        """
        metadata = {"automation": "auto-submit", "url": posting.url}

        form_data = posting.scraper_metadata.get("form")
        applicant = self.applicant_lookup(application.user_id)
        if form_data and applicant:
            plan = build_submission_plan(ApplicationForm.from_dict(form_data), applicant)
            if not plan.is_complete:
                raise SubmissionError(
                    f"Missing required fields: {', '.join(plan.missing_required_fields)}"
                )
            metadata["fields"] = sorted(plan.field_values)
            metadata["uploads"] = sorted(plan.file_uploads)

        if self.latency_seconds:
            time.sleep(self.latency_seconds)

        self.logger.info(f"Submitted application {application.id} to {posting.company}")
        return metadata
