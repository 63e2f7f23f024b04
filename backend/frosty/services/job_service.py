# Overview: Service-layer operations for jobs; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import Conflict, NotFound, ValidationError
from ..extensions import db
from ..models import Job, User, JOB_STATUSES
from ..validation import ModelValidationPolicy, parse_int, validate_payload
from .customer_service import get_customer
from .document_service import JOB, next_document_number


JOB_POLICY = ModelValidationPolicy(
    writable_fields={
        "job_id", "customer_id", "title", "description", "location",
        "start_date", "end_date", "status",
        "vehicle_make", "vehicle_model", "registration_number",
    },
    required_on_create={"customer_id", "title", "start_date"},
    choices={"status": JOB_STATUSES},
    ignored_fields={"id", "created_at", "created_by"},
)


def get_job(job_id: int) -> Job:
    job = db.session.get(Job, job_id)
    if not job:
        raise NotFound("Job not found")
    return job


def get_job_by_code(code: str) -> Job | None:
    return db.session.query(Job).filter_by(job_id=code).first()


def list_jobs(*, status: str | None = None, customer_id=None) -> list[Job]:
    query = db.session.query(Job)
    if status:
        if status not in JOB_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(sorted(JOB_STATUSES))}",
                {"status": "unknown status"},
            )
        query = query.filter(Job.status == status)
    if customer_id is not None:
        query = query.filter(Job.customer_id == parse_int("customerId", customer_id))
    return query.order_by(Job.id).all()


def _check_dates(job: Job) -> None:
    if job.end_date is not None and job.end_date < job.start_date:
        raise ValidationError("end_date cannot be before start_date", {"end_date": "must be on or after start_date"})


def _next_free_job_code() -> str:
    # Skip codes already taken by manually numbered jobs
    while True:
        code = next_document_number(document_type=JOB, prefix="JOB")
        if not get_job_by_code(code):
            return code


def create_job(payload: dict, actor: User) -> Job:
    if isinstance(payload, dict):
        # A blank job code means "generate one"
        payload = {k: v for k, v in payload.items() if not (k in ("jobId", "job_id") and not v)}
    patch = validate_payload(model=Job, payload=payload, policy=JOB_POLICY, partial=False)

    # The customer must exist when the job is booked; later deletion is allowed
    try:
        get_customer(patch["customer_id"])
    except NotFound:
        raise ValidationError("Customer not found", {"customer_id": "does not exist"})

    if patch.get("job_id") and get_job_by_code(patch["job_id"]):
        raise Conflict("Job ID already exists", {"job_id": "already exists"})

    job = Job(created_by=actor.id, **patch)
    job.status = job.status or "scheduled"
    _check_dates(job)
    if not job.job_id:
        job.job_id = _next_free_job_code()

    db.session.add(job)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Job ID already exists", {"job_id": "already exists"})
    return job


def update_job(job_id: int, payload: dict) -> Job:
    job = get_job(job_id)
    patch = validate_payload(model=Job, payload=payload, policy=JOB_POLICY, partial=True)

    if "job_id" in patch and patch["job_id"] != job.job_id:
        if get_job_by_code(patch["job_id"]):
            raise Conflict("Job ID already exists", {"job_id": "already exists"})

    for key, value in patch.items():
        setattr(job, key, value)
    try:
        _check_dates(job)
    except ValidationError:
        db.session.rollback()
        raise

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Job ID already exists", {"job_id": "already exists"})
    return job


def delete_job(job_id: int) -> None:
    """Delete the job only; its inspection and invoices are left in place."""
    job = get_job(job_id)
    db.session.delete(job)
    db.session.commit()
