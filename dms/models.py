from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from dms.db import Base

# Largest id a 64-bit INTEGER column can hold
MAX_ID = 2 ** 63 - 1

# Association table for many-to-many relationship between documents and tags
document_tags = Table(
    'document_tags',
    Base.metadata,
    Column('document_id', Integer, ForeignKey('documents.id', ondelete='CASCADE'), primary_key=True),
    Column('tag_id', Integer, ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True)
)

# Links between documents and pages. Pages belong to the hosting site, so
# page_id is an opaque identity without a foreign key.
document_pages = Table(
    'document_pages',
    Base.metadata,
    Column('document_id', Integer, ForeignKey('documents.id', ondelete='CASCADE'), primary_key=True),
    Column('page_id', Integer, primary_key=True, index=True)
)


class Document(Base):
    """
    Document record - identity and metadata of one stored file.
    """
    __tablename__ = "documents"
    # ids are never reused, even after the highest row is deleted
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    filename = Column(String(255), nullable=False, default="")  # eg. 3469~2011-energysaving-report.pdf
    folder = Column(String(255), nullable=False, default="")  # eg. 3
    title = Column(String(1024), nullable=False, default="")
    description = Column(Text, nullable=True)
    # When the file was first stored or last replaced; metadata edits don't count
    last_changed = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    tags = relationship("Tag", secondary=document_tags, back_populates="documents")


class Tag(Base):
    """
    Tags table - category/value pairs, shared by every document tagged identically.
    """
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String(255), nullable=False, index=True)
    value = Column(String(1024), nullable=False)
    multi_value = Column(Boolean, nullable=False, default=True)

    # Relationship
    documents = relationship("Document", secondary=document_tags, back_populates="tags")
