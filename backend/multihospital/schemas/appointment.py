"""
预约与诊疗记录相关的 Pydantic schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date, time


class AppointmentCreate(BaseModel):
    """创建/更新预约请求"""
    patient_id: int = Field(..., description="患者ID")
    doctor_id: int = Field(..., description="医生ID")
    appointment_date: date = Field(..., description="预约日期")
    appointment_time: time = Field(..., description="预约时间")
    reason: Optional[str] = Field(None, description="就诊原因")
    status: Optional[str] = Field(None, description="预约状态, 缺省为 Scheduled")


class AppointmentStatusUpdate(BaseModel):
    """预约状态更新请求, 取值在服务层校验"""
    new_status: str = Field(..., description="新状态: Scheduled/Confirmed/Completed/Cancelled/NoShow")


class AppointmentItem(BaseModel):
    """预约详情/列表项"""
    appointment_id: int
    patient_id: int
    patient_name: Optional[str] = None
    doctor_id: int
    doctor_name: Optional[str] = None
    appointment_date: date
    appointment_time: time
    reason: Optional[str] = None
    status: str
    treatment_record_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class AppointmentListResponse(BaseModel):
    """预约列表响应"""
    appointments: List[AppointmentItem]


class TreatmentRecordCreate(BaseModel):
    """医生提交诊疗记录"""
    diagnosis: str = Field(..., min_length=1, description="诊断")
    treatment: Optional[str] = Field(None, description="治疗方案")
    prescription: Optional[str] = Field(None, description="处方")
    notes: Optional[str] = Field(None, description="备注")


class TreatmentRecordItem(BaseModel):
    treatment_record_id: int
    appointment_id: int
    diagnosis: str
    treatment: Optional[str] = None
    prescription: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
