"""Database repository layer, one repo per aggregate root."""

from src.db.repositories.alert_log_repo import AlertLogRepo
from src.db.repositories.case_repo import CaseRepo
from src.db.repositories.case_update_repo import CaseUpdateRepo
from src.db.repositories.profile_repo import ProfileRepo

__all__ = [
    "AlertLogRepo",
    "CaseRepo",
    "CaseUpdateRepo",
    "ProfileRepo",
]
