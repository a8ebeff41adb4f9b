from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime


# 医生管理
class DoctorCreate(BaseModel):
    department_id: int = Field(description="科室ID")
    name: str = Field(min_length=1, max_length=50, description="医生姓名")
    specialization: Optional[str] = Field(None, max_length=100, description="专长")
    phone: Optional[str] = Field(None, max_length=25, description="联系电话")
    email: Optional[EmailStr] = Field(None, description="邮箱(登录账号)")
    password: Optional[str] = Field(None, min_length=6, max_length=64, description="密码, 提供时同时创建医生账号")


class DoctorUpdate(BaseModel):
    department_id: Optional[int] = Field(None, description="科室ID")
    name: Optional[str] = Field(None, min_length=1, max_length=50, description="医生姓名")
    specialization: Optional[str] = Field(None, max_length=100, description="专长")
    phone: Optional[str] = Field(None, max_length=25, description="联系电话")


class DoctorItem(BaseModel):
    doctor_id: int
    department_id: int
    hospital_id: int
    name: str
    specialization: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    hospital_name: Optional[str] = None
    department_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DoctorListResponse(BaseModel):
    doctors: List[DoctorItem]
