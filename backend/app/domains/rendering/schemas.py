from datetime import date
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from backend.app.domains.letter.schemas import RefereeProfile

OutputFormat = Literal["docx", "txt"]


class RenderMetadata(BaseModel):
    title: str
    applicant_name: str
    referee: RefereeProfile = Field(default_factory=RefereeProfile)
    letter_date: date


class RenderRequest(BaseModel):
    format: OutputFormat = "docx"


class RenderResult(BaseModel):
    letter_id: UUID
    version: int
    format: OutputFormat
    output_path: str
    content_type: str
    content_hash: str
    file_size_bytes: int


class RenderValidationResult(BaseModel):
    is_valid: bool = True
    file_size_bytes: int = 0
    paragraph_count: int = 0
    error_messages: list[str] = Field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.is_valid = False
        self.error_messages.append(message)
