from .tenancy import Company, Unit, PLAN_STATUSES
from .auth import User, UserRole, SessionToken, ROLE_OWNER, ROLE_BARBER, ROLE_SUPER_ADMIN, VALID_ROLES
from .catalog import Barber, Service
from .appointments import Appointment
from .history import CancellationRecord, DeletionRecord
from .tracking import PageVisit
from .security import SecurityEvent

__all__ = [
    'Company', 'Unit', 'PLAN_STATUSES',
    'User', 'UserRole', 'SessionToken',
    'ROLE_OWNER', 'ROLE_BARBER', 'ROLE_SUPER_ADMIN', 'VALID_ROLES',
    'Barber', 'Service',
    'Appointment',
    'CancellationRecord', 'DeletionRecord',
    'PageVisit',
    'SecurityEvent',
]
