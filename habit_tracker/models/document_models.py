"""SQLModel table backing the per-user document store."""

import datetime
from typing import Any, Dict

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


# 日本語: ユーザーごとに1行、文書全体をJSONで保持 / English: One row per user holding the whole document as JSON
class UserDocumentRow(SQLModel, table=True):
    __tablename__ = "user_document"

    user_id: str = Field(primary_key=True, max_length=128)
    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    updated_at: datetime.datetime = Field(default_factory=datetime.datetime.now)
