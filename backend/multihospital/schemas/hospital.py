from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from multihospital.schemas.image import ImageRefItem


# 医院的创建/更新通过 multipart 表单提交(含图片), 字段见 api/hospital.py

class HospitalItem(BaseModel):
    hospital_id: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    image: Optional[ImageRefItem] = None
    created_at: datetime
    updated_at: datetime


class HospitalListResponse(BaseModel):
    hospitals: List[HospitalItem]
