"""
Website inquiries (form submissions)

Every public form on the site posts to ``/api/form-submissions`` with a
``type``. Submissions are validated per type, rate limited per IP, stripped
of markup and stored with request metadata. Logged-in staff read, archive
and export them from the dashboard.
"""

import csv
import io
import logging
import re
from datetime import datetime, time as dtime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import Response
import phonenumbers
from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

import config
from auth import get_current_user
from callback import slot_error
from database import (
    collection,
    create_document,
    find_paginated,
    get_by_id,
    to_object_id,
    update_document,
    utcnow,
)
from errors import BadRequestError, NotFoundError, TooManyRequestsError, validation_error_from
from helpers import client_ip, search_filter, strip_html
from responses import created, no_content, paginated, success
from schemas import FormSubmission, SubmissionStatus, SubmissionType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/form-submissions", tags=["inquiries"])

COLLECTION = "formsubmission"

THANK_YOU_MESSAGE = "Tack för din förfrågan! Vi återkommer inom 24 timmar."
RATE_LIMIT_MESSAGE = "För många förfrågningar. Försök igen om 15 minuter."

COUNTRY_CODE_RE = re.compile(r"^\+\d{1,4}$")
PHONE_RE = re.compile(r"^[0-9\s\-]+$")

HELP_TYPE_LABELS = {
    "clinic_buy": "Jag driver en klinik/salong och vill köpa denna produkt",
    "start_business": "Jag vill starta eget och vill veta mer om produkten",
    "just_interested": "Jag är bara intresserad och vill veta mer",
    "buy_contact": "Jag vill köpa denna produkt och komma i kontakt med er",
}

TRAINING_INTEREST_LABELS = {
    "machine_purchase": "Jag planerar att köpa maskin och vill veta mer om utbildningen",
    "already_customer": "Jag är redan kund och vill boka utbildning",
    "certification_info": "Jag vill veta mer om certifiering som Synos terapeut",
    "general_info": "Jag vill ha allmän information om era utbildningar",
}

CSV_HEADERS = [
    "ID", "Type", "Status", "Full Name", "Email", "Country Code", "Country",
    "Phone", "Corporation Number", "Message", "Product Name", "Help Type",
    "GDPR Consent", "Created At", "IP Address",
]


# -----------------
# Field rules
# -----------------

def _length(value: str, min_len: int, max_len: int, too_short: str, too_long: str) -> str:
    value = (value or "").strip()
    if len(value) < min_len:
        raise ValueError(too_short)
    if len(value) > max_len:
        raise ValueError(too_long)
    return value


def _optional_max(value: Optional[str], max_len: int, too_long: str) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if len(value) > max_len:
        raise ValueError(too_long)
    return value or None


def full_phone_number(country_code: str, phone: str) -> str:
    return country_code + re.sub(r"[\s\-]", "", phone)


def is_valid_phone(country_code: str, phone: str) -> bool:
    """True when the number is a real number for the country it is dialled in."""
    try:
        number = phonenumbers.parse(full_phone_number(country_code, phone))
    except phonenumbers.NumberParseException:
        return False
    return phonenumbers.is_valid_number(number)


class PhoneFields(BaseModel):
    country_code: str
    phone: str

    @field_validator("country_code")
    @classmethod
    def check_country_code(cls, v):
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("Landskod krävs")
        if len(v) > 10 or not COUNTRY_CODE_RE.match(v):
            raise ValueError("Ogiltig landskod")
        return v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v, info: ValidationInfo):
        v = (v or "").strip()
        if len(v) < 6:
            raise ValueError("Telefonnummer måste vara minst 6 siffror")
        if len(v) > 20:
            raise ValueError("Telefonnummer får inte överstiga 20 siffror")
        if not PHONE_RE.match(v):
            raise ValueError("Endast siffror, mellanslag och bindestreck tillåtna")
        code = info.data.get("country_code")
        if code and not is_valid_phone(code, v):
            raise ValueError("Ogiltigt telefonnummer för valt land")
        return v


class PersonFields(PhoneFields):
    full_name: str
    email: str
    gdpr_consent: bool
    page_url: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, v):
        return _length(v, 2, 100, "Namnet måste vara minst 2 tecken", "Namnet får inte överstiga 100 tecken")

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        v = (v or "").strip().lower()
        if len(v) > 255:
            raise ValueError("E-postadressen får inte överstiga 255 tecken")
        try:
            validate_email(v, check_deliverability=False)
        except EmailNotValidError:
            raise ValueError("Ange en giltig e-postadress")
        return v

    @field_validator("gdpr_consent")
    @classmethod
    def check_gdpr(cls, v):
        if v is not True:
            raise ValueError("Du måste godkänna integritetspolicyn")
        return v


class BaseInquiry(PersonFields):
    country_name: str
    corporation_number: Optional[str] = None
    message: Optional[str] = None
    marketing_consent: bool = False

    @field_validator("country_name")
    @classmethod
    def check_country_name(cls, v):
        return _length(v, 2, 100, "Land krävs", "Landets namn får inte överstiga 100 tecken")

    @field_validator("corporation_number")
    @classmethod
    def check_corporation_number(cls, v):
        return _optional_max(v, 30, "Organisationsnummer får inte överstiga 30 tecken")

    @field_validator("message")
    @classmethod
    def check_message(cls, v):
        return _optional_max(v, 2000, "Meddelandet får inte överstiga 2000 tecken")


class ProductInquiry(BaseInquiry):
    help_type: str
    product_id: str
    product_name: str
    product_slug: str

    @field_validator("help_type")
    @classmethod
    def check_help_type(cls, v):
        if v not in HELP_TYPE_LABELS:
            raise ValueError("Välj hur vi kan hjälpa dig")
        return v

    @field_validator("product_id", "product_name", "product_slug")
    @classmethod
    def not_blank(cls, v):
        if not (v or "").strip():
            raise ValueError("Produktuppgifter krävs")
        return v.strip()


class TrainingInquiry(BaseInquiry):
    training_interest_type: str

    @field_validator("training_interest_type")
    @classmethod
    def check_interest(cls, v):
        if v not in TRAINING_INTEREST_LABELS:
            raise ValueError("Välj vad du är intresserad av")
        return v


class ContactInquiry(BaseInquiry):
    subject: str
    message: str

    @field_validator("subject")
    @classmethod
    def check_subject(cls, v):
        return _length(v, 3, 200, "Ämne måste vara minst 3 tecken", "Ämne får inte överstiga 200 tecken")

    @field_validator("message")
    @classmethod
    def check_contact_message(cls, v):
        return _length(v or "", 10, 2000, "Meddelandet måste vara minst 10 tecken",
                       "Meddelandet får inte överstiga 2000 tecken")


class CallbackRequest(PhoneFields):
    preferred_date: str = ""
    preferred_time: str = ""
    gdpr_consent: bool
    page_url: Optional[str] = None

    @field_validator("preferred_time")
    @classmethod
    def check_slot(cls, v, info: ValidationInfo):
        error = slot_error(info.data.get("preferred_date"), v)
        if error:
            raise ValueError(error)
        return v

    @field_validator("gdpr_consent")
    @classmethod
    def check_recording_consent(cls, v):
        if v is not True:
            raise ValueError("Du måste godkänna att samtalet kan spelas in")
        return v


class TourRequest(PersonFields):
    message: Optional[str] = None

    @field_validator("message")
    @classmethod
    def check_message(cls, v):
        return _optional_max(v, 1000, "Meddelandet får inte överstiga 1000 tecken")


class QuoteRequest(PersonFields):
    company_name: Optional[str] = None
    message: Optional[str] = None

    @field_validator("company_name")
    @classmethod
    def check_company(cls, v):
        return _optional_max(v, 200, "Företagsnamnet får inte överstiga 200 tecken")

    @field_validator("message")
    @classmethod
    def check_message(cls, v):
        return _optional_max(v, 2000, "Meddelandet får inte överstiga 2000 tecken")


class ResellerApplication(PersonFields):
    company_name: str
    business_description: str
    corporation_number: Optional[str] = None
    country_name: Optional[str] = None
    message: Optional[str] = None

    @field_validator("company_name")
    @classmethod
    def check_company(cls, v):
        return _length(v, 2, 200, "Företagsnamnet måste vara minst 2 tecken",
                       "Företagsnamnet får inte överstiga 200 tecken")

    @field_validator("business_description")
    @classmethod
    def check_description(cls, v):
        return _length(v, 10, 1000, "Beskriv din verksamhet med minst 10 tecken",
                       "Beskrivningen får inte överstiga 1000 tecken")

    @field_validator("corporation_number")
    @classmethod
    def check_corporation_number(cls, v):
        return _optional_max(v, 30, "Organisationsnummer får inte överstiga 30 tecken")

    @field_validator("message")
    @classmethod
    def check_message(cls, v):
        return _optional_max(v, 2000, "Meddelandet får inte överstiga 2000 tecken")


FORM_MODELS = {
    "product_inquiry": ProductInquiry,
    "training_inquiry": TrainingInquiry,
    "contact": ContactInquiry,
    "callback_request": CallbackRequest,
    "tour_request": TourRequest,
    "quote_request": QuoteRequest,
    "reseller_application": ResellerApplication,
}


# -----------------
# Creating submissions
# -----------------

def request_metadata(request: Request, body: Dict[str, Any]) -> Dict[str, Any]:
    headers = request.headers
    language = headers.get("accept-language")
    return {
        "ip_address": client_ip(headers),
        "user_agent": headers.get("user-agent") or "unknown",
        "referrer": headers.get("referer"),
        "page_url": body.get("page_url") or headers.get("referer") or "unknown",
        "locale": language.split(",")[0].strip() if language else None,
        "submitted_at": utcnow(),
    }


def within_rate_limit(ip_address: str) -> bool:
    window_start = utcnow() - timedelta(minutes=config.RATE_LIMIT_WINDOW_MINUTES)
    count = collection(COLLECTION).count_documents({
        "metadata.ip_address": ip_address,
        "created_at": {"$gte": window_start},
    })
    return count < config.RATE_LIMIT_MAX


def _clean(value: Optional[str]) -> Optional[str]:
    return strip_html(value) or None if value else None


def build_submission(form_type: str, data: BaseModel, metadata: Dict[str, Any]) -> FormSubmission:
    """Map a validated form onto the stored document shape."""
    now = utcnow()
    values = data.model_dump()
    doc: Dict[str, Any] = {
        "type": form_type,
        "gdpr_consent": True,
        "gdpr_consent_timestamp": now,
        "gdpr_consent_version": config.GDPR_CONSENT_VERSION,
        "marketing_consent": bool(values.get("marketing_consent", False)),
        "country_code": values.get("country_code"),
        "phone": values.get("phone"),
        "metadata": metadata,
    }
    if form_type == "callback_request":
        doc.update({
            "full_name": "Callback Request",
            "email": "callback@synos.se",
            "country_name": "Sweden",
            "preferred_date": values["preferred_date"],
            "preferred_time": values["preferred_time"],
            "message": f"Önskad tid för återuppringning: {values['preferred_date']} kl. {values['preferred_time']}",
        })
        return FormSubmission(**doc)

    doc.update({
        "full_name": _clean(values["full_name"]),
        "email": values["email"],
        "country_name": _clean(values.get("country_name")) or "Sweden",
        "corporation_number": _clean(values.get("corporation_number")),
        "message": _clean(values.get("message")),
    })
    if form_type == "product_inquiry":
        doc.update({
            "help_type": values.get("help_type"),
            "product_id": values.get("product_id"),
            "product_name": _clean(values.get("product_name")),
            "product_slug": values.get("product_slug"),
        })
    elif form_type == "training_inquiry":
        doc["training_interest_type"] = values["training_interest_type"]
    elif form_type == "contact":
        doc["subject"] = _clean(values["subject"])
    elif form_type == "quote_request":
        doc["company_name"] = _clean(values.get("company_name"))
        doc["corporation_number"] = doc["company_name"]
    elif form_type == "reseller_application":
        doc["company_name"] = _clean(values["company_name"])
        doc["business_description"] = _clean(values["business_description"])
    return FormSubmission(**doc)


@router.post("")
def create_submission(request: Request, body: Dict[str, Any] = Body(...)):
    form_type = body.get("type") or "product_inquiry"
    model = FORM_MODELS.get(form_type)
    if model is None:
        raise BadRequestError("Unsupported form type")

    try:
        data = model.model_validate(body)
    except PydanticValidationError as e:
        logger.warning("Rejected %s submission: %d error(s)", form_type, e.error_count())
        raise validation_error_from(e)

    metadata = request_metadata(request, body)
    if not within_rate_limit(metadata["ip_address"]):
        logger.warning("Rate limit hit for %s", metadata["ip_address"])
        raise TooManyRequestsError(RATE_LIMIT_MESSAGE)

    submission_id = create_document(COLLECTION, build_submission(form_type, data, metadata))
    logger.info("Form submission created: %s (%s)", submission_id, form_type)
    return created({"id": submission_id, "message": THANK_YOU_MESSAGE}, "Submission created successfully")


# -----------------
# Dashboard
# -----------------

class SortOption(str, Enum):
    created_asc = "created_at"
    created_desc = "-created_at"
    name_asc = "full_name"
    name_desc = "-full_name"


class StatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def read_or_archived(cls, v):
        if v not in ("read", "archived"):
            raise ValueError("Status must be 'read' or 'archived'")
        return v


class BulkStatusUpdate(StatusUpdate):
    ids: List[str] = Field(..., min_length=1, max_length=500)


class ExportRequest(BaseModel):
    ids: Optional[List[str]] = None
    type: Optional[SubmissionType] = None
    status: Optional[SubmissionStatus] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    format: str = Field("csv", pattern="^(csv|xlsx)$")


def _parse_day(value: str, end_of_day: bool = False) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise BadRequestError(f"Invalid date: {value}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    # A bare date as upper bound includes the whole day
    if end_of_day and len(value) == 10:
        parsed = datetime.combine(parsed.date(), dtime.max, tzinfo=timezone.utc)
    return parsed


def build_filter(type: Optional[str] = None, status: Optional[str] = None, search: Optional[str] = None,
                 date_from: Optional[str] = None, date_to: Optional[str] = None,
                 product_id: Optional[str] = None, ids: Optional[List[str]] = None) -> dict:
    query: Dict[str, Any] = {}
    if ids:
        query["_id"] = {"$in": [to_object_id(i) for i in ids]}
    if type:
        query["type"] = type
    if status:
        query["status"] = status
    if product_id:
        query["product_id"] = product_id
    if date_from or date_to:
        created_at = {}
        if date_from:
            created_at["$gte"] = _parse_day(date_from)
        if date_to:
            created_at["$lte"] = _parse_day(date_to, end_of_day=True)
        query["created_at"] = created_at
    text = search_filter(search, ["full_name", "email", "phone", "product_name"])
    if text:
        query.update(text)
    return query


def _enum_value(value):
    return value.value if isinstance(value, Enum) else value


@router.get("")
def list_submissions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=config.MAX_LIMIT),
    type: Optional[SubmissionType] = None,
    status: Optional[SubmissionStatus] = None,
    search: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    product_id: Optional[str] = None,
    sort: SortOption = SortOption.created_desc,
    user: dict = Depends(get_current_user),
):
    query = build_filter(_enum_value(type), _enum_value(status), search, date_from, date_to, product_id)
    result = find_paginated(COLLECTION, query, page, limit, sort.value)
    return paginated(result, "Submissions retrieved successfully")


@router.get("/stats")
def submission_stats(user: dict = Depends(get_current_user)):
    coll = collection(COLLECTION)
    by_status = {s.value: 0 for s in SubmissionStatus}
    for row in coll.aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}]):
        by_status[row["_id"]] = row["count"]
    by_type = {
        row["_id"]: row["count"]
        for row in coll.aggregate([{"$group": {"_id": "$type", "count": {"$sum": 1}}}])
    }
    return success({
        "total": sum(by_status.values()),
        "new": by_status.get("new", 0),
        "read": by_status.get("read", 0),
        "archived": by_status.get("archived", 0),
        "by_type": by_type,
    })


def export_csv(submissions: List[dict]) -> str:
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(CSV_HEADERS)
    for s in submissions:
        created_at = s.get("created_at")
        writer.writerow([
            str(s["_id"]),
            s.get("type", ""),
            s.get("status", ""),
            s.get("full_name", ""),
            s.get("email", ""),
            s.get("country_code") or "",
            s.get("country_name") or "",
            s.get("phone") or "",
            s.get("corporation_number") or "",
            s.get("message") or "",
            s.get("product_name") or "",
            HELP_TYPE_LABELS.get(s.get("help_type"), s.get("help_type") or ""),
            "Yes" if s.get("gdpr_consent") else "No",
            created_at.isoformat() if created_at else "",
            (s.get("metadata") or {}).get("ip_address", ""),
        ])
    return out.getvalue()


@router.post("/export")
def export_submissions(payload: ExportRequest, user: dict = Depends(get_current_user)):
    query = build_filter(
        _enum_value(payload.type), _enum_value(payload.status),
        date_from=payload.date_from, date_to=payload.date_to, ids=payload.ids,
    )
    submissions = list(collection(COLLECTION).find(query).sort("created_at", -1))
    if not submissions:
        raise BadRequestError("No submissions found matching the criteria")
    if payload.format != "csv":
        raise BadRequestError("XLSX export not yet implemented, use CSV")
    filename = f"form-submissions-{utcnow().date().isoformat()}.csv"
    logger.info("Exported %d submissions", len(submissions))
    return Response(
        content=export_csv(submissions),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _status_changes(status: str, user: dict) -> dict:
    changes = {"status": status}
    if status == "read":
        changes["read_at"] = utcnow()
        changes["read_by"] = str(user["_id"])
    return changes


@router.patch("/bulk-status")
def bulk_update_status(payload: BulkStatusUpdate, user: dict = Depends(get_current_user)):
    ids = [to_object_id(i) for i in payload.ids]
    changes = _status_changes(payload.status, user)
    changes["updated_at"] = utcnow()
    result = collection(COLLECTION).update_many({"_id": {"$in": ids}}, {"$set": changes})
    logger.info("Bulk status %s on %d submissions", payload.status, result.modified_count)
    return success({"matched": result.matched_count, "modified": result.modified_count},
                   "Submissions updated successfully")


@router.get("/{submission_id}")
def get_submission(submission_id: str, user: dict = Depends(get_current_user)):
    doc = get_by_id(COLLECTION, submission_id, "Invalid submission ID format")
    if not doc:
        raise NotFoundError("Submission not found")
    return success(doc, "Submission retrieved successfully")


@router.patch("/{submission_id}/status")
def update_status(submission_id: str, payload: StatusUpdate, user: dict = Depends(get_current_user)):
    to_object_id(submission_id, "Invalid submission ID format")
    doc = update_document(COLLECTION, submission_id, _status_changes(payload.status, user))
    if not doc:
        raise NotFoundError("Submission not found")
    logger.info("Submission %s marked %s", submission_id, payload.status)
    return success(doc, "Status updated successfully")


@router.delete("/{submission_id}", status_code=204)
def delete_submission(submission_id: str, user: dict = Depends(get_current_user)):
    oid = to_object_id(submission_id, "Invalid submission ID format")
    if collection(COLLECTION).delete_one({"_id": oid}).deleted_count == 0:
        raise NotFoundError("Submission not found")
    logger.info("Submission %s deleted", submission_id)
    return no_content()
