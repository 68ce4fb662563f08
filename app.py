import logging
import os
import sqlite3

from dotenv import load_dotenv
load_dotenv()
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

DATABASE_PATH = os.getenv("DATABASE_PATH", "tasks.db")
CORS_ORIGINS  = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

SQLITE_MIN_INT = -2**63
SQLITE_MAX_INT = 2**63 - 1

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TaskError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TaskError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(TaskError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Task not found"):
        super().__init__(message)


def parse_status(raw, message: str = "Invalid status") -> TaskStatus:
    """Turn a raw request value into a TaskStatus or raise ValidationError."""
    if not isinstance(raw, str):
        raise ValidationError(message)
    try:
        return TaskStatus(raw)
    except ValueError:
        raise ValidationError(message)


def parse_task_id(raw: str) -> int:
    # Only plain ASCII digits inside SQLite's INTEGER range can name a task.
    digits = raw[1:] if raw.startswith("-") else raw
    if not (digits.isascii() and digits.isdigit()):
        raise NotFoundError()
    task_id = int(raw)
    if not SQLITE_MIN_INT <= task_id <= SQLITE_MAX_INT:
        raise NotFoundError()
    return task_id


def now_iso() -> str:
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


app = FastAPI()
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TaskError)
async def task_error_handler(request: Request, exc: TaskError):
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("%s %s rejected: malformed body", request.method, request.url.path)
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


def connect(path: Optional[str] = None) -> sqlite3.Connection:
    # FastAPI may run the dependency and the endpoint on different threadpool workers.
    conn = sqlite3.connect(path or DATABASE_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(path: Optional[str] = None):
    conn = connect(path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS tasks (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                title       TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                status      TEXT NOT NULL DEFAULT 'pending',
                created_at  TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()
    logger.info("Task table ready at %s", path or DATABASE_PATH)


@app.on_event("startup")
def startup():
    init_db()


def get_db():
    conn = connect()
    try:
        cur = conn.cursor()
        yield cur
        conn.commit()
    finally:
        conn.close()


Cursor = Annotated[sqlite3.Cursor, Depends(get_db)]


def row_to_task(row: sqlite3.Row) -> dict:
    return {
        "id": row["id"],
        "title": row["title"],
        "description": row["description"],
        "status": row["status"],
        "createdAt": row["created_at"],
    }


def fetch_task(db: sqlite3.Cursor, task_id: int) -> sqlite3.Row:
    db.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
    row = db.fetchone()
    if row is None:
        raise NotFoundError()
    return row


class CreateTaskRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


class UpdateTaskRequest(BaseModel):
    """Every field is optional; only the ones present in the body are applied."""
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


@app.post("/api/tasks", status_code=201)
def create_task(db: Cursor, req: Optional[CreateTaskRequest] = None):
    req = req or CreateTaskRequest()
    if not req.title:
        raise ValidationError("Title is required")
    task_status = TaskStatus.PENDING
    if "status" in req.model_fields_set:
        task_status = parse_status(req.status)
    db.execute(
        "INSERT INTO tasks (title, description, status, created_at) VALUES (?, ?, ?, ?)",
        (req.title, req.description or "", task_status.value, now_iso()),
    )
    task_id = db.lastrowid
    logger.info("Created task %s", task_id)
    return row_to_task(fetch_task(db, task_id))


@app.get("/api/tasks")
def list_tasks(db: Cursor, status: Optional[str] = None):
    if status:
        task_status = parse_status(status, "Invalid status filter")
        db.execute("SELECT * FROM tasks WHERE status = ?", (task_status.value,))
    else:
        db.execute("SELECT * FROM tasks")
    return [row_to_task(row) for row in db.fetchall()]


@app.get("/api/tasks/{task_id}")
def get_task(task_id: str, db: Cursor):
    return row_to_task(fetch_task(db, parse_task_id(task_id)))


@app.put("/api/tasks/{task_id}")
def update_task(task_id: str, db: Cursor, req: Optional[UpdateTaskRequest] = None):
    req = req or UpdateTaskRequest()
    existing = fetch_task(db, parse_task_id(task_id))
    fields = req.model_fields_set

    title = existing["title"]
    description = existing["description"]
    task_status = TaskStatus(existing["status"])

    if "title" in fields:
        # Empty titles are accepted here; only creation insists on one.
        if req.title is None:
            raise ValidationError("Invalid title")
        title = req.title
    if "description" in fields:
        description = req.description or ""
    if "status" in fields:
        task_status = parse_status(req.status)

    db.execute(
        "UPDATE tasks SET title = ?, description = ?, status = ? WHERE id = ?",
        (title, description, task_status.value, existing["id"]),
    )
    logger.info("Updated task %s fields=%s", existing["id"], sorted(fields))
    return row_to_task(fetch_task(db, existing["id"]))


@app.delete("/api/tasks/{task_id}")
def delete_task(task_id: str, db: Cursor):
    db.execute("DELETE FROM tasks WHERE id = ?", (parse_task_id(task_id),))
    if db.rowcount == 0:
        raise NotFoundError()
    logger.info("Deleted task %s", task_id)
    return {"message": "Task deleted"}


@app.get("/", response_class=PlainTextResponse)
def root():
    return "Task Management API with SQLite is running"
