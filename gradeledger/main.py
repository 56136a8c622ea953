"""FastAPI application entrypoint."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlmodel import Session

from gradeledger import db
from gradeledger.grading.errors import RubricIntegrityError
from gradeledger.routers.assessments import router as assessments_router
from gradeledger.routers.grades import router as grades_router
from gradeledger.routers.submissions import router as submissions_router
from gradeledger.settings import settings

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(assessments_router)
app.include_router(submissions_router)
app.include_router(grades_router)


@app.exception_handler(RubricIntegrityError)
async def rubric_integrity_handler(request: Request, exc: RubricIntegrityError) -> JSONResponse:
    logger.error("rubric integrity violation", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(status_code=422, content={"detail": {"code": "rubric_integrity", "message": str(exc)}})


@app.on_event("startup")
def on_startup() -> None:
    db.create_db_and_tables()


@app.get("/health", tags=["meta"])
def health() -> dict[str, bool]:
    return {"ok": True}


@app.get("/health/deep", tags=["meta"])
def deep_health() -> dict[str, bool | str]:
    db_ok = False
    try:
        with Session(db.engine) as session:
            session.exec(text("SELECT 1"))
        db_ok = True
    except Exception:
        logger.exception("database health probe failed")
        db_ok = False

    return {
        "ok": True,
        "db_ok": db_ok,
        "data_dir": str(settings.data_path),
    }
