# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from ..errors import NotFound
from ..extensions import db
from ..models import Customer
from ..validation import ModelValidationPolicy, validate_payload


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "notes"},
    required_on_create={"name", "email"},
    ignored_fields={"id", "created_at"},
)


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFound("Customer not found")
    return customer


def list_customers() -> list[Customer]:
    return db.session.query(Customer).order_by(Customer.id).all()


def create_customer(payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    customer = Customer(**patch)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(customer_id: int, payload: dict) -> Customer:
    customer = get_customer(customer_id)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    for key, value in patch.items():
        setattr(customer, key, value)
    db.session.commit()
    return customer


def delete_customer(customer_id: int) -> None:
    """
    Delete a customer record only.

    Jobs, inspections and invoices that reference the customer are kept;
    their customer_id simply stops resolving.
    """
    customer = get_customer(customer_id)
    db.session.delete(customer)
    db.session.commit()
