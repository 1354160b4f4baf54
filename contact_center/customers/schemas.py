"""Pydantic schemas for the customer directory API."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    phone: str = Field(min_length=3, max_length=64)
    email: str | None = None
    document_number: str | None = None


class CustomerUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, min_length=3, max_length=64)
    email: str | None = None
    document_number: str | None = None


class TagCreate(BaseModel):
    tag: str = Field(min_length=1, max_length=64)
    color: str | None = None


class NoteCreate(BaseModel):
    content: str = Field(min_length=1)
    title: str | None = None


class NoteUpdate(BaseModel):
    content: str | None = None
    title: str | None = None


class CustomerTagOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tag: str
    color: str | None = None
    created_at: datetime


class CustomerNoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str | None = None
    content: str
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime


class CustomerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    phone: str
    normalized_phone: str
    email: str | None = None
    document_number: str | None = None
    status: str
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None
    tags: list[CustomerTagOut] = Field(default_factory=list)
    notes: list[CustomerNoteOut] = Field(default_factory=list)


class CustomerList(BaseModel):
    items: list[CustomerOut]
    total: int


class CustomerStats(BaseModel):
    total_interactions: int
    calls: int
    whatsapp: int
    sms: int
    resolved: int
    last_interaction: datetime | None = None


class CustomerStatsOut(BaseModel):
    customer: CustomerOut
    stats: CustomerStats
