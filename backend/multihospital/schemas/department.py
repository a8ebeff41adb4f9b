from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from multihospital.schemas.image import ImageRefItem


# 科室创建通过 multipart 表单提交(含图片), 更新使用 JSON
class DepartmentUpdate(BaseModel):
    hospital_id: Optional[int] = Field(None, description="所属医院ID(用于转移科室)")
    name: Optional[str] = Field(None, min_length=1, max_length=100, description="科室名称")
    description: Optional[str] = Field(None, description="描述")


class DepartmentItem(BaseModel):
    department_id: int
    hospital_id: int
    hospital_name: Optional[str] = None
    name: str
    description: Optional[str] = None
    image: Optional[ImageRefItem] = None
    created_at: datetime
    updated_at: datetime


class DepartmentListResponse(BaseModel):
    departments: List[DepartmentItem]
