"""
NEET Quiz Insights API (FastAPI Version)
========================================
HTTP surface over the quiz insights engine. GET routes pull the three
source records from the configured endpoints; POST routes take them in
the request body.

Usage:
    uvicorn fastapi_app:app --reload
"""

import sys
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from quiz_data_loader import DataLoadError, load_quiz_data
from quiz_insights_api import (
    QuizDataError,
    analyze_performance,
    generate_insights,
    predict_rank_from_records,
)
from quiz_settings import Settings, get_settings

# -------------------------
# Pydantic Models (Data Validation)
# -------------------------

class PredictionRequest(BaseModel):
    submission: Dict[str, Any] = Field(
        ...,
        examples=[{"correct_answers": 80, "total_questions": 100, "speed": 90}],
        description="Current attempt record",
    )
    history: List[Dict[str, Any]] = Field(
        default_factory=list, description="Past attempts, any order"
    )


class AnalysisRequest(PredictionRequest):
    quiz: Optional[Dict[str, Any]] = Field(None, description="Quiz definition with questions")


# -------------------------
# FastAPI App Setup
# -------------------------

def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


configure_logging(get_settings().log_level)

app = FastAPI(
    title="NEET Quiz Insights API",
    description="Topic analysis, rank prediction and study recommendations from quiz history.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def run_engine(label: str, compute: Callable[[], Dict]) -> Dict:
    """Map engine failures onto HTTP errors"""
    try:
        return compute()
    except QuizDataError as exc:
        logger.warning("{} rejected input: {}", label, exc.message)
        raise HTTPException(status_code=422, detail=exc.to_dict())
    except Exception as exc:
        logger.exception("{} failed", label)
        raise HTTPException(status_code=500, detail={"error": label, "message": str(exc)})


async def fetch_records(label: str, settings: Settings):
    try:
        return await load_quiz_data(settings)
    except DataLoadError as exc:
        logger.error("{}: {}", label, exc)
        raise HTTPException(status_code=502, detail={"error": label, "message": str(exc)})


# -------------------------
# Endpoints
# -------------------------

@app.get("/")
def root():
    """Health check and API info"""
    return {
        "service": "NEET Quiz Insights API",
        "status": "active",
        "version": "1.0.0",
        "docs_url": "/docs",
    }


@app.get("/api/quiz/analysis")
async def get_analysis(settings: Settings = Depends(get_settings)):
    data = await fetch_records("Analysis Failed", settings)
    logger.info("Analysis for {} historical attempts", len(data.history))
    return run_engine("Analysis Failed", lambda: analyze_performance(
        data.submission, data.history, data.quiz, settings.engine_config()
    ))


@app.get("/api/quiz/rank-prediction")
async def get_rank_prediction(settings: Settings = Depends(get_settings)):
    data = await fetch_records("Rank Prediction Failed", settings)
    logger.info("Rank prediction for {} historical attempts", len(data.history))
    return run_engine("Rank Prediction Failed", lambda: predict_rank_from_records(
        data.submission, data.history, settings.engine_config()
    ))


@app.get("/api/quiz/insights")
async def get_insights(settings: Settings = Depends(get_settings)):
    data = await fetch_records("Insights Generation Failed", settings)
    logger.info("Insights for {} historical attempts", len(data.history))
    return run_engine("Insights Generation Failed", lambda: generate_insights(
        data.submission, data.history, data.quiz, settings.engine_config()
    ))


@app.post("/api/quiz/analysis")
def post_analysis(request: AnalysisRequest, settings: Settings = Depends(get_settings)):
    return run_engine("Analysis Failed", lambda: analyze_performance(
        request.submission, request.history, request.quiz, settings.engine_config()
    ))


@app.post("/api/quiz/rank-prediction")
def post_rank_prediction(request: PredictionRequest, settings: Settings = Depends(get_settings)):
    return run_engine("Rank Prediction Failed", lambda: predict_rank_from_records(
        request.submission, request.history, settings.engine_config()
    ))


@app.post("/api/quiz/insights")
def post_insights(request: AnalysisRequest, settings: Settings = Depends(get_settings)):
    return run_engine("Insights Generation Failed", lambda: generate_insights(
        request.submission, request.history, request.quiz, settings.engine_config()
    ))


if __name__ == "__main__":
    settings = get_settings()
    logger.info("Starting NEET Quiz Insights server on {}:{}", settings.host, settings.port)
    uvicorn.run("fastapi_app:app", host=settings.host, port=settings.port, reload=True)
