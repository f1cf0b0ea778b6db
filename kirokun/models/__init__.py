# flake8: noqa
from .enums import (
    StaffRole, RecordItem, IncidentStatus,
    AuditStatus, AuditAction, AuditTargetType
)
from .partition import Partition, PartitionRow
