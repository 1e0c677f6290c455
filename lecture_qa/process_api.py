"""Lecture Q&A API (FastAPI).

Run:
    uvicorn lecture_qa.process_api:app --port 8080

Requests:
  curl http://localhost:8080/health
  curl -X POST http://localhost:8080/upload -F "video=@lecture.mp4"
  curl -X POST http://localhost:8080/ingest \\
    -H "Content-Type: application/json" \\
    -d '{"fileId":"upload-...","title":"Graphs"}'
  curl -X POST http://localhost:8080/analyze \\
    -H "Content-Type: application/json" \\
    -d '{"lectureId":"...","query":"dynamic programming"}'
  curl -X POST http://localhost:8080/lectures/{lecture_id}/cancel
  curl http://localhost:8080/lectures/{lecture_id}/status

Add "background": true to /ingest to get 202 + lectureId immediately and
poll the status endpoint instead of waiting for the whole pipeline.
"""

from __future__ import annotations

import logging
import os
import uuid
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from lecture_qa.errors import InvalidRequestError, LectureNotFoundError, LectureQAError, PipelineCanceled
from lecture_qa.pipeline import orchestrator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
for _noisy in ("httpx", "httpcore", "google_genai"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

app = FastAPI(title="Lecture Q&A API")

_cors_origins_str = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
_cors_origins = [o.strip() for o in _cors_origins_str.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


class CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IngestRequest(CamelRequest):
    video_url: Optional[str] = None
    file_id: Optional[str] = None
    title: Optional[str] = None
    lecture_id: Optional[str] = None
    background: bool = False


class AnalyzeRequest(CamelRequest):
    lecture_id: Optional[str] = None
    query: Optional[str] = None


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok"}


@app.post("/upload")
async def upload(video: Optional[UploadFile] = File(None)) -> dict:
    if video is None or not video.filename:
        raise HTTPException(status_code=400, detail="No video file uploaded")
    data = await video.read()
    try:
        result = orchestrator.upload_video(data, video.filename)
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"success": True, **result.to_wire()}


def _ingest_in_background(request: IngestRequest, lecture_id: str) -> None:
    try:
        orchestrator.run_ingest_pipeline(
            video_url=request.video_url,
            file_id=request.file_id,
            title=request.title,
            lecture_id=lecture_id,
        )
    except LectureQAError as exc:
        # status key already records the failure
        logger.error("Background ingest %s failed: %s", lecture_id, exc)


@app.post("/ingest")
async def ingest(request: IngestRequest, background_tasks: BackgroundTasks):
    if not request.video_url and not request.file_id:
        raise HTTPException(status_code=400, detail="Either videoUrl or fileId must be provided")

    if request.background:
        lecture_id = request.lecture_id or str(uuid.uuid4())
        orchestrator.set_status(orchestrator.get_default_context(), lecture_id, "processing", stage="queued")
        background_tasks.add_task(_ingest_in_background, request, lecture_id)
        return JSONResponse(status_code=202, content={"lectureId": lecture_id, "status": "processing"})

    try:
        result = await orchestrator.run_ingest_async(
            video_url=request.video_url,
            file_id=request.file_id,
            title=request.title,
            lecture_id=request.lecture_id,
        )
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PipelineCanceled as exc:
        raise HTTPException(status_code=409, detail=f"Ingestion canceled: {exc}") from exc
    except LectureQAError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to process video: {exc}") from exc
    return {"success": True, "status": "ready", **result.to_wire()}


@app.post("/analyze")
def analyze(request: AnalyzeRequest) -> dict:
    if not request.lecture_id or not request.query or not request.query.strip():
        raise HTTPException(status_code=400, detail="lectureId and query are required")
    try:
        result = orchestrator.analyze(request.lecture_id, request.query)
    except LectureNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return result.to_wire()


@app.post("/lectures/{lecture_id}/cancel")
def cancel_lecture(lecture_id: str) -> dict:
    orchestrator.request_cancel(lecture_id)
    return {"lectureId": lecture_id, "cancelRequested": True}


@app.get("/lectures/{lecture_id}/status")
def lecture_status(lecture_id: str) -> dict:
    status = orchestrator.get_status(lecture_id)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Lecture {lecture_id} not found")
    return {"lectureId": lecture_id, **status.to_wire()}
