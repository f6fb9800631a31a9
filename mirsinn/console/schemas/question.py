from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    date_key: Optional[str] = Field(default=None, alias="dateKey", pattern=r"^\d{2}-\d{2}-\d{4}$")

    model_config = {"populate_by_name": True}


class GenerateResponse(BaseModel):
    status: str
    date_key: str = Field(alias="dateKey")
    question_ids: List[str] = Field(default_factory=list, alias="questionIds")
    degraded: bool = False

    model_config = {"populate_by_name": True}


class QuestionSummary(BaseModel):
    id: str
    order: int = Field(..., ge=1)
    title: Optional[str] = None
    source: Optional[str] = None
    url: Optional[str] = None


class DayDetail(BaseModel):
    date_key: str = Field(alias="dateKey")
    question_count: int = Field(0, alias="questionCount", ge=0)
    primary_question_id: Optional[str] = Field(default=None, alias="primaryQuestionId")
    question_ids: List[str] = Field(default_factory=list, alias="questionIds")
    questions_summary: List[QuestionSummary] = Field(default_factory=list, alias="questionsSummary")
    question: Any = None
    options: List[Dict[str, Any]] = Field(default_factory=list)
    results: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


__all__ = ["DayDetail", "GenerateRequest", "GenerateResponse", "QuestionSummary"]
