# apuracao/schemas/obligation.py

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


ObligationStatus = Literal["rascunho", "gerado", "validado", "enviado", "erro"]
FileFormat = Literal["csv", "json"]


class ObligationCreate(BaseModel):
    obligation_kind_id: int
    period_month: int = Field(ge=1, le=12)
    period_year: int = Field(ge=1900, le=9999)


class ObligationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    obligation_kind_id: int
    period_month: int
    period_year: int
    status: ObligationStatus
    generated_file_path: Optional[str] = None
    protocol: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    message: Optional[str] = None
    created_at: Optional[datetime] = None


class ObligationFileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    obligation_id: int
    file_path: str
    file_name: Optional[str] = None
    file_type: str
    format: str
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    hash_sha256: Optional[str] = None
    request_id: Optional[str] = None
    generated_at: Optional[datetime] = None


class GenerateFileInput(BaseModel):
    file_type: str = Field(default="TAX_SUMMARY", max_length=50)
    format: FileFormat = "csv"


class SubmitInput(BaseModel):
    protocol: str = Field(min_length=1, max_length=120)


class FailInput(BaseModel):
    message: str = Field(min_length=1, max_length=2000)


class GenerationResult(BaseModel):
    success: bool
    obligation: ObligationOut
    file: Optional[ObligationFileOut] = None
    message: Optional[str] = None
