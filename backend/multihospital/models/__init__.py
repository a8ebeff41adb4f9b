# 导入所有模型，确保SQLAlchemy能够正确识别它们
# 先加载 db.base, 由其按顺序注册全部表类
from multihospital.db import base as _base  # noqa
from .user import User, UserRole, Role
from .user_access_log import UserAccessLog
from .hospital import Hospital
from .department import Department
from .doctor import Doctor
from .administrator import Administrator
from .patient import Patient, Gender
from .appointment import Appointment, AppointmentStatus
from .treatment_record import TreatmentRecord

__all__ = [
    "User",
    "UserRole",
    "Role",
    "UserAccessLog",
    "Hospital",
    "Department",
    "Doctor",
    "Administrator",
    "Patient",
    "Gender",
    "Appointment",
    "AppointmentStatus",
    "TreatmentRecord",
]
