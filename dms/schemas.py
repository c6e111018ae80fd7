from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class TagCreate(BaseModel):
    category: str = Field(..., min_length=1, max_length=255)
    value: str = Field(..., max_length=1024)
    multi_value: bool = Field(True, description="False makes the category hold a single value")


class TagResponse(BaseModel):
    id: int
    category: str
    value: str
    multi_value: bool

    class Config:
        from_attributes = True


class TagValuesResponse(BaseModel):
    category: str
    values: Optional[List[str]] = Field(None, description="null when no tag matches")


class DocumentBase(BaseModel):
    title: Optional[str] = Field(None, max_length=1024)
    description: Optional[str] = None


class DocumentCreate(DocumentBase):
    pass


class DocumentUpdate(DocumentBase):
    pass


class DocumentResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    filename: str
    folder: str
    original_filename: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    last_changed: Optional[datetime] = None
    created_at: Optional[datetime] = None
    download_link: str
    tags: List[TagResponse] = []
    page_ids: List[int] = []


class DocumentUploadResponse(BaseModel):
    document_id: int
    filename: str
    message: str


class PageLinkRequest(BaseModel):
    page_ids: List[int] = Field(..., min_length=1)


class PageLinksResponse(BaseModel):
    document_id: int
    page_ids: List[int]
    published_on: str


class MessageResponse(BaseModel):
    message: str
