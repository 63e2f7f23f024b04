from __future__ import annotations

from ..extensions import db
from frosty.time_utils import to_utc_z


JOB_STATUSES = {"scheduled", "in-progress", "completed", "canceled"}


class Job(db.Model):
    """
    A booked ice-blasting job.

    job_id is the human-readable code printed on paperwork (JOB-0001);
    id is the internal key other records point at.
    """
    __tablename__ = "jobs"
    __table_args__ = (
        db.UniqueConstraint("job_id", name="uq_jobs_job_id"),
        db.Index("ix_jobs_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.String(32), nullable=False)

    # Soft reference: not a foreign key, customers can be deleted independently
    customer_id = db.Column(db.Integer, nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    location = db.Column(db.String(255), nullable=True)

    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="scheduled")

    vehicle_make = db.Column(db.String(64), nullable=True)
    vehicle_model = db.Column(db.String(64), nullable=True)
    registration_number = db.Column(db.String(16), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "jobId": self.job_id,
            "customerId": self.customer_id,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "startDate": to_utc_z(self.start_date),
            "endDate": to_utc_z(self.end_date) if self.end_date else None,
            "status": self.status,
            "vehicleMake": self.vehicle_make,
            "vehicleModel": self.vehicle_model,
            "registrationNumber": self.registration_number,
            "createdBy": self.created_by,
            "createdAt": to_utc_z(self.created_at),
        }


class VehicleInspection(db.Model):
    """
    Pre-job vehicle condition record signed by the customer.

    photos is a JSON list of {"filename", "data" (base64), "contentType"}.
    customer_signature is a base64 image captured from the signature pad.
    """
    __tablename__ = "vehicle_inspections"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Internal jobs.id, kept as a soft reference like customer_id
    job_id = db.Column(db.Integer, nullable=False, index=True)
    customer_id = db.Column(db.Integer, nullable=True, index=True)

    vehicle_make = db.Column(db.String(64), nullable=False)
    vehicle_model = db.Column(db.String(64), nullable=False)
    registration_number = db.Column(db.String(16), nullable=False)
    mileage = db.Column(db.Integer, nullable=False)
    fuel_level = db.Column(db.Integer, nullable=False)
    damage_description = db.Column(db.Text, nullable=True)

    photos = db.Column(db.JSON, nullable=False, default=list)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_signature = db.Column(db.Text, nullable=False)

    inspected_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    inspection_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "jobId": self.job_id,
            "customerId": self.customer_id,
            "vehicleMake": self.vehicle_make,
            "vehicleModel": self.vehicle_model,
            "registrationNumber": self.registration_number,
            "mileage": self.mileage,
            "fuelLevel": self.fuel_level,
            "damageDescription": self.damage_description,
            "photos": list(self.photos or []),
            "customerName": self.customer_name,
            "customerSignature": self.customer_signature,
            "inspectedBy": self.inspected_by,
            "inspectionDate": to_utc_z(self.inspection_date),
        }
