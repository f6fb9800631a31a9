from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from mirsinn.adapters.db import get_adapter
from mirsinn.console.schemas.question import DayDetail, GenerateRequest, GenerateResponse
from mirsinn.domain.dates import parse_date_key
from mirsinn.domain.documents import day_path
from mirsinn.workers.daily_question import run as generate_questions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/questions", tags=["questions"])


@router.post("/generate", response_model=GenerateResponse, summary="Generate today's questions on demand")
def generate(payload: Optional[GenerateRequest] = None):
    date_key = payload.date_key if payload else None
    try:
        result = generate_questions(date_key)
    except Exception as exc:
        logger.exception("Failed to generate question")
        return JSONResponse(status_code=500, content={"error": str(exc)})
    return GenerateResponse(
        status=result.status,
        date_key=result.date_key,
        question_ids=list(result.question_ids),
        degraded=result.degraded,
    )


@router.get("/{date_key}", response_model=DayDetail, summary="Fetch a day's question document")
def get_day(date_key: str) -> DayDetail:
    try:
        parse_date_key(date_key)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    document = get_adapter().get(day_path(date_key))
    if document is None:
        raise HTTPException(status_code=404, detail="Question not available yet")
    document.setdefault("dateKey", date_key)
    return DayDetail.model_validate(document)


__all__ = ["router"]
