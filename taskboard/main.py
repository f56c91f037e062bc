import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .database import get_db, Base, engine
from . import schemas, crud, errors, views

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    errors.NotFound: status.HTTP_404_NOT_FOUND,
    errors.ValidationError: status.HTTP_400_BAD_REQUEST,
    errors.TransientIOError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))
    yield


app = FastAPI(title="Taskboard API", version="1.0.0", lifespan=lifespan)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(errors.TaskError)
async def task_error_handler(request: Request, exc: errors.TaskError):
    code = next((c for t, c in ERROR_STATUS.items() if isinstance(exc, t)), 500)
    log = logger.warning if code < 500 else logger.error
    log("%s %s -> %d: %s", request.method, request.url.path, code, exc.message)
    return _error(code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    message = errors.format_validation_errors(exc.errors())
    logger.warning("%s %s -> 400: %s", request.method, request.url.path, message)
    return _error(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(OperationalError)
async def database_error_handler(request: Request, exc: OperationalError):
    logger.error("%s %s -> 503: database error: %s", request.method, request.url.path, exc)
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Database unavailable")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("%s %s -> 500", request.method, request.url.path)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@app.get("/health")
def health_check():
    return {"status": "ok"}

@app.get("/api/tasks", response_model=List[schemas.TaskOut])
def list_tasks(view: Optional[str] = None, sort: Optional[str] = None, db: Session = Depends(get_db)):
    tasks = crud.get_tasks(db)
    if view:
        tasks = views.filter_by_view(tasks, view)
    if sort:
        tasks = views.sort_tasks(tasks, sort)
    return tasks

@app.get("/api/tasks/search", response_model=List[schemas.TaskOut])
def search_tasks(q: str = "", db: Session = Depends(get_db)):
    return views.search_tasks(crud.get_tasks(db), q)

@app.get("/api/tasks/filter/{filter_type}/{value}", response_model=List[schemas.TaskOut])
def filter_tasks(filter_type: str, value: str, db: Session = Depends(get_db)):
    if filter_type == "project":
        return crud.get_tasks_by_project(db, value)
    if filter_type == "label":
        return crud.get_tasks_by_label(db, value)
    if filter_type == "priority":
        return crud.get_tasks_by_priority(db, value)
    raise errors.ValidationError("Invalid filter type")

@app.get("/api/tasks/{task_id}", response_model=schemas.TaskOut)
def get_task(task_id: int, db: Session = Depends(get_db)):
    return crud.get_task(db, task_id)

@app.post("/api/tasks", response_model=schemas.TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(task_in: schemas.TaskCreate, db: Session = Depends(get_db)):
    return crud.create_task(db, task_in)

@app.put("/api/tasks/{task_id}", response_model=schemas.TaskOut)
def update_task(task_id: int, task_in: Dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    # Validated in crud so legacy reminders can use the stored dueDate.
    return crud.update_task(db, task_id, task_in)

@app.delete("/api/tasks/{task_id}", response_model=schemas.Message)
def delete_task(task_id: int, db: Session = Depends(get_db)):
    crud.delete_task(db, task_id)
    return {"message": "Task deleted successfully"}

@app.patch("/api/tasks/{task_id}/complete", response_model=schemas.TaskOut)
def complete_task(task_id: int, body: Optional[schemas.CompletionUpdate] = None, db: Session = Depends(get_db)):
    completed = True if body is None else body.completed
    return crud.set_completed(db, task_id, completed)

@app.post("/api/tasks/{task_id}/subtasks", response_model=schemas.TaskOut, status_code=status.HTTP_201_CREATED)
def add_subtask(task_id: int, subtask_in: schemas.SubtaskCreate, db: Session = Depends(get_db)):
    return crud.add_subtask(db, task_id, subtask_in)

@app.get("/api/projects", response_model=List[str])
def list_projects(db: Session = Depends(get_db)):
    return crud.list_projects(db)

@app.post("/api/projects", response_model=schemas.NameOut, status_code=status.HTTP_201_CREATED)
def create_project(name_in: schemas.NameIn, db: Session = Depends(get_db)):
    return {"name": crud.create_project(db, name_in)}

@app.get("/api/labels", response_model=List[str])
def list_labels(db: Session = Depends(get_db)):
    return crud.list_labels(db)

@app.post("/api/labels", response_model=schemas.NameOut, status_code=status.HTTP_201_CREATED)
def create_label(name_in: schemas.NameIn, db: Session = Depends(get_db)):
    return {"name": crud.create_label(db, name_in)}


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    from .config import get_settings
    from .logging_setup import setup_logging

    settings = get_settings()
    setup_logging(level=settings.log_level, log_dir=settings.log_dir)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
