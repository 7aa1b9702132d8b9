"""Repository modules for database access."""

from repositories.abuse_log_repository import AbuseLogRepository
from repositories.action_repository import ActionRepository
from repositories.activity_repository import ActivityRepository
from repositories.checkin_repository import CheckinRepository
from repositories.device_repository import DeviceRepository
from repositories.trust_profile_repository import TrustProfileRepository

__all__ = [
    "AbuseLogRepository",
    "ActionRepository",
    "ActivityRepository",
    "CheckinRepository",
    "DeviceRepository",
    "TrustProfileRepository",
]
