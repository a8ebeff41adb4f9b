from pydantic import BaseModel
from typing import Literal, Optional


# 图片引用: inline 时 data 为 base64 字符串, path 时 path 为相对访问路径
class ImageRefItem(BaseModel):
    kind: Literal["inline", "path"]
    data: Optional[str] = None
    path: Optional[str] = None
