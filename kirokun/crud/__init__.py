from .crud_office import crud_office as office
from .crud_staff import crud_staff as staff
from .crud_support_record import crud_support_record as support_record
from .crud_incident import crud_incident as incident
from .crud_audit_log import audit_log
