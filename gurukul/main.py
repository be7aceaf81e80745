"""
Gurukul API - Main Application
Students enroll in courses and track lecture completion, admins manage
courses, users and announcements
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gurukul import __version__, config
from gurukul.admin.router import router as admin_router
from gurukul.courses.course_router import router as course_router
from gurukul.courses.database import rebuild_lecture_index
from gurukul.courses.enrollment_router import router as enrollment_router
from gurukul.database import create_indexes, db_manager
from gurukul.notifications.router import router as notification_router
from gurukul.users.router import router as user_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Gurukul API", version=__version__)


@app.on_event("startup")
async def startup_event():
    db_manager.connect()
    db = db_manager.get_database()
    await create_indexes(db)
    await rebuild_lecture_index(db)
    logger.info("Gurukul API started")


@app.on_event("shutdown")
async def shutdown_event():
    db_manager.disconnect()


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== ERROR HANDLING ====================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        messages.append(f"{field}: {error.get('msg')}" if field else error.get("msg"))
    return JSONResponse(status_code=400, content={"detail": "; ".join(messages)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ==================== ROUTER REGISTRATION ====================
app.include_router(course_router, prefix="/api")
app.include_router(enrollment_router, prefix="/api")
app.include_router(notification_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(user_router, prefix="/api")
# ============================================================


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
