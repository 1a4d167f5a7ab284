from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

MaterialStatus = Literal["draft", "published", "coming_soon"]


class MaterialCategoryIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = ""


class MaterialCategoryOut(BaseModel):
    id: int
    name: str
    description: str

    model_config = {"from_attributes": True}


class MaterialIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    tags: list[str] = []
    pdf_url: str = ""
    category_id: Optional[int] = None
    associated_test_id: Optional[int] = None
    status: MaterialStatus = "draft"


class MaterialUpdateIn(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    pdf_url: Optional[str] = None
    category_id: Optional[int] = None
    associated_test_id: Optional[int] = None
    status: Optional[MaterialStatus] = None


class MaterialOut(BaseModel):
    id: int
    title: str
    description: str
    tags: list[str]
    pdf_url: Optional[str] = None
    category_id: Optional[int] = None
    category_name: str
    associated_test_id: Optional[int] = None
    status: str
    accessible: bool = True
    upgrade_message: Optional[str] = None
    created_at: datetime


class MaterialGroupOut(BaseModel):
    category_name: str
    accessible: bool
    materials: list[MaterialOut]
