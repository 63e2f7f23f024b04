# Overview: Service-layer operations for vehicle inspections; encapsulates business logic and database work.

"""
Vehicle inspections with photos and a customer signature.

Photos and signatures are kept inline as base64 text. Uploads are read
fully into memory and encoded before they reach the database; there is no
streaming path.
"""

from __future__ import annotations

import base64
import binascii

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..models import User, VehicleInspection
from ..validation import ModelValidationPolicy, parse_int, parse_string, validate_payload
from .customer_service import get_customer
from .job_service import get_job


MAX_PHOTOS = 4
MAX_PHOTO_BYTES = 5 * 1024 * 1024

INSPECTION_POLICY = ModelValidationPolicy(
    writable_fields={
        "job_id", "customer_id", "vehicle_make", "vehicle_model",
        "registration_number", "mileage", "fuel_level", "damage_description",
        "customer_name", "customer_signature", "inspection_date",
    },
    required_on_create={
        "job_id", "vehicle_make", "vehicle_model", "registration_number",
        "mileage", "fuel_level", "customer_name", "customer_signature",
    },
    ignored_fields={"id", "inspected_by"},
)


def _strip_data_url(value: str) -> tuple[str | None, str]:
    """Split "data:image/png;base64,AAAA" into ("image/png", "AAAA")."""
    if value.startswith("data:") and "," in value:
        header, _, data = value.partition(",")
        media_type = header[5:].split(";", 1)[0] or None
        return media_type, data
    return None, value


def _decode_base64(data: str, field_name: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(f"{field_name} must be base64 encoded", {field_name: "must be base64 encoded"})


def encode_upload(filename: str, content_type: str | None, raw: bytes) -> dict:
    """Turn an uploaded file into the stored photo shape."""
    return {
        "filename": filename or "photo",
        "data": base64.b64encode(raw).decode("ascii"),
        "contentType": content_type or "application/octet-stream",
    }


def validate_photos(photos) -> list[dict]:
    if photos is None:
        return []
    if not isinstance(photos, list):
        raise ValidationError("photos must be a list", {"photos": "must be a list"})
    if len(photos) > MAX_PHOTOS:
        raise ValidationError(f"At most {MAX_PHOTOS} photos are allowed", {"photos": f"at most {MAX_PHOTOS} allowed"})

    cleaned = []
    for i, photo in enumerate(photos):
        key = f"photos[{i}]"
        if not isinstance(photo, dict):
            raise ValidationError(f"{key} must be an object", {key: "must be an object"})
        content_type = parse_string(f"{key}.contentType", photo.get("contentType", photo.get("content_type"))) or ""
        data = parse_string(f"{key}.data", photo.get("data")) or ""
        if not data:
            raise ValidationError(f"{key}.data is required", {f"{key}.data": "is required"})
        media_type, data = _strip_data_url(data)
        content_type = content_type or media_type or ""
        if not content_type.startswith("image/"):
            raise ValidationError(f"{key} must be an image", {f"{key}.contentType": "must be an image/* type"})
        if len(_decode_base64(data, f"{key}.data")) > MAX_PHOTO_BYTES:
            raise ValidationError(f"{key} exceeds 5MB", {f"{key}.data": "exceeds 5MB"})
        cleaned.append({
            "filename": parse_string(f"{key}.filename", photo.get("filename")) or f"photo-{i + 1}",
            "data": data,
            "contentType": content_type,
        })
    return cleaned


def validate_signature(signature: str) -> str:
    _, data = _strip_data_url(signature)
    if not _decode_base64(data, "customer_signature"):
        raise ValidationError("customer_signature cannot be empty", {"customer_signature": "cannot be empty"})
    return signature


def _check_ranges(patch: dict) -> None:
    if "fuel_level" in patch and not 0 <= patch["fuel_level"] <= 100:
        raise ValidationError("fuel_level must be between 0 and 100", {"fuel_level": "must be between 0 and 100"})
    if "mileage" in patch and patch["mileage"] < 0:
        raise ValidationError("mileage must be >= 0", {"mileage": "must be >= 0"})
    if "customer_signature" in patch:
        validate_signature(patch["customer_signature"])


def _check_references(patch: dict) -> None:
    if "job_id" in patch:
        try:
            get_job(patch["job_id"])
        except NotFound:
            raise ValidationError("Job not found", {"job_id": "does not exist"})
    if patch.get("customer_id") is not None:
        try:
            get_customer(patch["customer_id"])
        except NotFound:
            raise ValidationError("Customer not found", {"customer_id": "does not exist"})


def _split_photos(payload: dict) -> tuple[dict, object]:
    if not isinstance(payload, dict):
        return payload, None
    payload = dict(payload)
    return payload, payload.pop("photos", None)


def get_inspection(inspection_id: int) -> VehicleInspection:
    inspection = db.session.get(VehicleInspection, inspection_id)
    if not inspection:
        raise NotFound("Vehicle inspection not found")
    return inspection


def list_inspections(*, job_id=None) -> list[VehicleInspection]:
    query = db.session.query(VehicleInspection)
    if job_id is not None:
        query = query.filter(VehicleInspection.job_id == parse_int("jobId", job_id))
    return query.order_by(VehicleInspection.id).all()


def create_inspection(payload: dict, actor: User) -> VehicleInspection:
    payload, photos = _split_photos(payload)
    patch = validate_payload(model=VehicleInspection, payload=payload, policy=INSPECTION_POLICY, partial=False)
    _check_ranges(patch)
    _check_references(patch)

    inspection = VehicleInspection(
        inspected_by=actor.id,
        photos=validate_photos(photos),
        **patch,
    )
    db.session.add(inspection)
    db.session.commit()
    return inspection


def update_inspection(inspection_id: int, payload: dict) -> VehicleInspection:
    """Partial update; a supplied photos list replaces the stored one."""
    inspection = get_inspection(inspection_id)
    payload, photos = _split_photos(payload)
    patch = validate_payload(model=VehicleInspection, payload=payload, policy=INSPECTION_POLICY, partial=True)
    _check_ranges(patch)
    _check_references(patch)
    cleaned_photos = validate_photos(photos) if photos is not None else None

    for key, value in patch.items():
        setattr(inspection, key, value)
    if cleaned_photos is not None:
        inspection.photos = cleaned_photos

    db.session.commit()
    return inspection


def delete_inspection(inspection_id: int) -> None:
    inspection = get_inspection(inspection_id)
    db.session.delete(inspection)
    db.session.commit()
