import logging
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
import schemas
import tasks
from auth import authenticate_user, create_access_token, get_current_user, get_password_hash
from database import Base, engine, get_db
from errors import TaskManagerError
from logging_setup import setup_logging
from models import TaskStatus, User

setup_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)
# Initialize app
app = FastAPI(title="Task Manager")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TaskManagerError)
async def task_manager_error_handler(request: Request, exc: TaskManagerError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.get("/health")
def health():
    return {"status": "ok"}


# Register
@app.post("/api/users/register", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    existing = db.query(User).filter(User.email == user.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already exists")

    new_user = User(email=user.email, password_hash=get_password_hash(user.password))
    with tasks.store_errors(db):
        db.add(new_user)
        db.commit()
        db.refresh(new_user)
    logger.info("Registered user %s", new_user.id)
    return new_user


# Login
@app.post("/api/users/login", response_model=schemas.Token)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user = authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    access_token = create_access_token(data={"sub": user.email})
    return {"access_token": access_token, "token_type": "bearer"}


@app.get("/api/users/me", response_model=schemas.UserOut)
def read_current_user(user: User = Depends(get_current_user)):
    return user


@app.post("/api/tasks", response_model=schemas.TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(task: schemas.TaskCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return tasks.create_task(db, user.id, task)


@app.get("/api/tasks", response_model=List[schemas.TaskOut])
def get_tasks(
    status: Optional[str] = None,
    category: Optional[str] = None,
    due_date: Optional[str] = Query(None, alias="dueDate"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    task_filter = tasks.TaskFilter.from_params(status=status, category=category, due_date=due_date)
    return tasks.list_tasks(db, user.id, task_filter)


@app.get("/api/tasks/search", response_model=List[schemas.TaskOut])
def search_tasks(q: Optional[str] = None, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return tasks.search_tasks(db, user.id, q)


@app.get("/api/tasks/category/{category}", response_model=List[schemas.TaskOut])
def get_tasks_by_category(category: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return tasks.tasks_by_category(db, user.id, category)


@app.get("/api/tasks/{task_id}", response_model=schemas.TaskOut)
def get_task(task_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return tasks.get_task(db, user.id, task_id)


# Update task
@app.put("/api/tasks/{task_id}", response_model=schemas.TaskOut)
def update_task(
    task_id: int,
    task: schemas.TaskUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    return tasks.update_task(db, user.id, task_id, task)


@app.delete("/api/tasks/{task_id}", response_model=schemas.Message)
def delete_task(task_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    tasks.delete_task(db, user.id, task_id)
    return {"message": "Task removed"}


@app.post("/api/tasks/{task_id}/markCompleted", response_model=schemas.TaskOut)
def mark_task_completed(task_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return tasks.set_status(db, user.id, task_id, TaskStatus.COMPLETED)


@app.post("/api/tasks/{task_id}/markPending", response_model=schemas.TaskOut)
def mark_task_pending(task_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return tasks.set_status(db, user.id, task_id, TaskStatus.PENDING)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000)
