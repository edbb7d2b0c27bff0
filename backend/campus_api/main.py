"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the Student Management API.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses.

Endpoints implemented (for each of students, faculties, courses):
- GET /api/<collection>
- GET /api/<collection>/{id}
- POST /api/<collection>
- PUT /api/<collection>/{id}
- DELETE /api/<collection>/{id}

plus GET / and GET /health.

The HTTP listener starts whether or not MongoDB is reachable; requests
that need the database get a 503 until a connection is established.
"""

import asyncio
import contextlib
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models, repositories, schemas, services
from .config import settings
from .database import DatabaseUnavailable, connection_manager, get_database

logger = logging.getLogger("campus_api.api")
if not logger.handlers:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

connection_manager.add_connect_hook(repositories.ensure_indexes)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start connecting in the background and close the client on shutdown."""
    logger.info("Starting Student Management API")
    startup = asyncio.create_task(connection_manager.connect())
    yield
    if not startup.done():
        startup.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await startup
    await connection_manager.close()
    logger.info("Student Management API stopped")


app = FastAPI(title="Student Management API", lifespan=lifespan)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


@app.exception_handler(DatabaseUnavailable)
async def database_unavailable_handler(request: Request, exc: DatabaseUnavailable):
    return JSONResponse(status_code=503, content={"message": str(exc)})


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    key = ", ".join((exc.details or {}).get("keyValue", {}).keys()) or "key"
    return JSONResponse(status_code=400, content={"message": f"duplicate value for {key}"})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{where}: {first.get('msg')}" if where else str(first.get("msg", "invalid request"))
    return JSONResponse(status_code=400, content={"message": message, "errors": jsonable_encoder(errors)})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # unmatched routes surface as a bare 404 from the router
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(
            status_code=404,
            content={"status": "error", "message": "Route not found", "path": request.url.path},
        )
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"status": "error", "message": str(exc) or "Internal Server Error"})


@app.get("/")
def home():
    """Describe the API and its collections."""
    return {
        "message": "Student Management API",
        "endpoints": {
            "students": "/api/students",
            "faculties": "/api/faculties",
            "courses": "/api/courses",
            "docs": "/docs",
        },
    }


@app.get("/health")
def health():
    """Lightweight health check; reports database state without failing."""
    state = connection_manager.state
    return {
        "status": "ok",
        "database": {"status": state.status.value, "retries": state.retries},
    }


# --- faculties ---------------------------------------------------------------

@app.get("/api/faculties", response_model=List[models.Faculty])
async def list_faculties(db=Depends(get_database)):
    return await services.FacultyService(db).list()


@app.get("/api/faculties/{faculty_id}", response_model=models.Faculty)
async def get_faculty(faculty_id: str, db=Depends(get_database)):
    faculty = await services.FacultyService(db).get(faculty_id)
    if not faculty:
        raise HTTPException(status_code=404, detail="Faculty not found")
    return faculty


@app.post("/api/faculties", response_model=models.Faculty, status_code=201)
async def create_faculty(payload: schemas.FacultyIn, db=Depends(get_database)):
    """Create a faculty. `name` defaults to "New Faculty" and `code` is upper-cased."""
    try:
        return await services.FacultyService(db).create(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/api/faculties/{faculty_id}", response_model=models.Faculty)
async def update_faculty(faculty_id: str, payload: schemas.FacultyUpdate, db=Depends(get_database)):
    try:
        faculty = await services.FacultyService(db).update(faculty_id, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not faculty:
        raise HTTPException(status_code=404, detail="Faculty not found")
    return faculty


@app.delete("/api/faculties/{faculty_id}")
async def delete_faculty(faculty_id: str, db=Depends(get_database)):
    if not await services.FacultyService(db).delete(faculty_id):
        raise HTTPException(status_code=404, detail="Faculty not found")
    return {"message": "Faculty deleted"}


# --- students ----------------------------------------------------------------

@app.get("/api/students", response_model=List[models.Student])
async def list_students(db=Depends(get_database)):
    return await services.StudentService(db).list()


@app.get("/api/students/{student_id}", response_model=models.Student)
async def get_student(student_id: str, db=Depends(get_database)):
    student = await services.StudentService(db).get(student_id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@app.post("/api/students", response_model=models.Student, status_code=201)
async def create_student(payload: schemas.StudentIn, db=Depends(get_database)):
    """Enroll a student. Email is stored lower-case and the student number upper-case."""
    try:
        return await services.StudentService(db).create(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/api/students/{student_id}", response_model=models.Student)
async def update_student(student_id: str, payload: schemas.StudentUpdate, db=Depends(get_database)):
    try:
        student = await services.StudentService(db).update(student_id, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@app.delete("/api/students/{student_id}")
async def delete_student(student_id: str, db=Depends(get_database)):
    if not await services.StudentService(db).delete(student_id):
        raise HTTPException(status_code=404, detail="Student not found")
    return {"message": "Student deleted"}


# --- courses -----------------------------------------------------------------

@app.get("/api/courses", response_model=List[models.Course])
async def list_courses(db=Depends(get_database)):
    return await services.CourseService(db).list()


@app.get("/api/courses/{course_id}", response_model=models.Course)
async def get_course(course_id: str, db=Depends(get_database)):
    course = await services.CourseService(db).get(course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


@app.post("/api/courses", response_model=models.Course, status_code=201)
async def create_course(payload: schemas.CourseIn, db=Depends(get_database)):
    try:
        return await services.CourseService(db).create(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/api/courses/{course_id}", response_model=models.Course)
async def update_course(course_id: str, payload: schemas.CourseUpdate, db=Depends(get_database)):
    try:
        course = await services.CourseService(db).update(course_id, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


@app.delete("/api/courses/{course_id}")
async def delete_course(course_id: str, db=Depends(get_database)):
    if not await services.CourseService(db).delete(course_id):
        raise HTTPException(status_code=404, detail="Course not found")
    return {"message": "Course deleted"}


def run():
    """Serve the app with uvicorn on the configured HOST/PORT."""
    import uvicorn

    uvicorn.run(
        "campus_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
