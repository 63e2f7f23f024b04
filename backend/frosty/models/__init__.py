from .auth import User, SessionToken, ROLE_ADMIN, ROLE_STAFF, ROLES
from .customers import Customer
from .jobs import Job, VehicleInspection, JOB_STATUSES
from .invoices import Invoice, InvoiceItem, INVOICE_STATUSES
from .documents import DocumentSequence
from .settings import CompanySetting

__all__ = [
    'User', 'SessionToken', 'ROLE_ADMIN', 'ROLE_STAFF', 'ROLES',
    'Customer',
    'Job', 'VehicleInspection', 'JOB_STATUSES',
    'Invoice', 'InvoiceItem', 'INVOICE_STATUSES',
    'DocumentSequence',
    'CompanySetting',
]
