from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import date, datetime


# 患者注册(同时创建 patient 角色账号)
class PatientRegister(BaseModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=64)
    phone: Optional[str] = Field(None, max_length=25)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, description="male/female/unknown")
    address: Optional[str] = Field(None, max_length=255)


class PatientItem(BaseModel):
    patient_id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: str
    address: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PatientListResponse(BaseModel):
    patients: List[PatientItem]
