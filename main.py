"""Main application module."""
import os
import time
import uuid
from typing import Annotated, Optional
from fastapi import FastAPI, HTTPException, Depends, status, Form, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
import models
from auth import TokenClaims, create_access_token, get_current_claims, hash_password, verify_password
from config import CORS_ORIGINS, HOST, PORT, UPLOAD_DIR
from database import get_db
from init_db import init_db
from logging_config import get_logger, setup_logging


setup_logging()
logger = get_logger("main")

os.makedirs(UPLOAD_DIR, exist_ok=True)

app = FastAPI()
init_db()
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")


class RegisterRequest(BaseModel):
    """Schema for a new account"""
    email: str
    password: str
    name: str


class LoginRequest(BaseModel):
    """Schema for login credentials"""
    email: str
    password: str


class PostBase(BaseModel):
    """Schema for Post data sent by clients"""
    title: str
    detail: str
    category: str


class PostOut(BaseModel):
    """Post as returned to clients, keyed by the blog table's column names"""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    blogid: int = Field(validation_alias="id")
    userid: int = Field(validation_alias="user_id")
    title: Optional[str] = None
    detail: Optional[str] = None
    category: Optional[str] = None


class AccountOut(BaseModel):
    """Public part of a user account"""
    model_config = ConfigDict(from_attributes=True)

    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


db_dependency = Annotated[Session, Depends(get_db)]
claims_dependency = Annotated[TokenClaims, Depends(get_current_claims)]


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render every HTTP error as a JSON body with a message field"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Render request validation failures as a single readable message"""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content={"message": f"Invalid request: {problems}"},
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Collapse unclassified store failures into a generic server error"""
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Database error"},
    )


def get_user_by_email(db: Session, email: str):
    """Retrieve a user from the database by their email address"""
    return db.query(models.User).filter(models.User.email == email).first()


def get_user_by_id(db: Session, user_id: int):
    """Retrieve a user from the database by their ID"""
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_post_by_id(db: Session, post_id: int):
    """Retrieve a post from the database by its ID"""
    return db.query(models.Post).filter(models.Post.id == post_id).first()


def save_picture(picture: UploadFile) -> str:
    """Write an uploaded picture to UPLOAD_DIR and return its public path"""
    _, extension = os.path.splitext(picture.filename or "")
    filename = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{extension}"
    with open(os.path.join(UPLOAD_DIR, filename), "wb") as f:
        while chunk := picture.file.read(1024 * 1024):
            f.write(chunk)
    logger.info("Saved picture %s", filename)
    return f"uploads/{filename}"


def remove_picture(picture_path: str):
    """Delete a previously saved picture, ignoring one that is already gone"""
    filename = os.path.basename(picture_path)
    try:
        os.remove(os.path.join(UPLOAD_DIR, filename))
        logger.info("Removed picture %s", filename)
    except FileNotFoundError:
        logger.warning("Picture %s already removed", filename)


@app.post("/register", status_code=status.HTTP_201_CREATED, response_class=PlainTextResponse)
def register(user: RegisterRequest, db: db_dependency):
    """Create a new account with a hashed password"""
    db_user = models.User(email=user.email,
                          password_hash=hash_password(user.password),
                          name=user.name)
    try:
        db.add(db_user)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error registering user %s", user.email)
        raise HTTPException(status_code=500, detail="Error registering user")

    logger.info("Registered user %s", user.email)
    return PlainTextResponse("User registered", status_code=status.HTTP_201_CREATED)


@app.post("/login")
def login(credentials: LoginRequest, db: db_dependency):
    """Authenticate a user using email and password and return an access token"""
    user = get_user_by_email(db, credentials.email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not verify_password(credentials.password, user.password_hash):
        logger.info("Wrong password for %s", credentials.email)
        raise HTTPException(status_code=401, detail="Password incorrect")

    token = create_access_token({"id": user.id, "email": user.email})
    logger.info("Login: %s (%s)", user.email, user.id)
    return {"token": token}


@app.get("/account", response_model=AccountOut)
def get_account(claims: claims_dependency, db: db_dependency):
    """Retrieve the account of the authenticated user"""
    user = get_user_by_id(db, claims.id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@app.put("/update-account")
def update_account(claims: claims_dependency,
                   db: db_dependency,
                   name: str = Form(...),
                   email: str = Form(...),
                   picture: Optional[UploadFile] = File(None)):
    """Update name and email; the picture is only replaced when a file is sent"""
    values = {"name": name, "email": email}
    picture_path = save_picture(picture) if picture is not None and picture.filename else None
    if picture_path:
        values["picture"] = picture_path

    try:
        updated = (db.query(models.User)
                   .filter(models.User.id == claims.id)
                   .update(values, synchronize_session=False))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        if picture_path:
            remove_picture(picture_path)
        raise

    if updated == 0:
        if picture_path:
            remove_picture(picture_path)
        raise HTTPException(status_code=400, detail="User not found")

    logger.info("Updated account %s", claims.id)
    return {"message": "Account updated"}


@app.post("/create-post", status_code=status.HTTP_201_CREATED)
def create_post(post: PostBase, claims: claims_dependency, db: db_dependency):
    """Create a post owned by the authenticated user"""
    db_post = models.Post(user_id=claims.id,
                          title=post.title,
                          detail=post.detail,
                          category=post.category)
    db.add(db_post)
    db.commit()
    db.refresh(db_post)
    logger.info("User %s created post %s", claims.id, db_post.id)
    return {"message": "Post created", "postId": db_post.id}


@app.get("/read-post", response_model=list[PostOut])
def read_posts(claims: claims_dependency, db: db_dependency):
    """List the posts of the authenticated user"""
    posts = db.query(models.Post).filter(models.Post.user_id == claims.id).all()
    if not posts:
        raise HTTPException(status_code=404, detail="No posts found")
    return posts


# Single-post routes are public and not scoped to an owner.
@app.get("/post/{post_id}", response_model=PostOut)
def read_post(post_id: int, db: db_dependency):
    """Retrieve a single post by its ID"""
    post = get_post_by_id(db, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Blog not found")
    return post


@app.put("/post/{post_id}")
def update_post(post_id: int, post: PostBase, db: db_dependency):
    """Replace the title, detail and category of a post"""
    updated = (db.query(models.Post)
               .filter(models.Post.id == post_id)
               .update({"title": post.title,
                        "detail": post.detail,
                        "category": post.category},
                       synchronize_session=False))
    db.commit()
    if updated == 0:
        raise HTTPException(status_code=404, detail="Blog not found")
    logger.info("Updated post %s", post_id)
    return {"message": "Blog updated successfully"}


@app.delete("/post/{post_id}")
def delete_post(post_id: int, db: db_dependency):
    """Delete a post by ID"""
    deleted = (db.query(models.Post)
               .filter(models.Post.id == post_id)
               .delete(synchronize_session=False))
    db.commit()
    if deleted == 0:
        raise HTTPException(status_code=404, detail="Blog not found")
    logger.info("Deleted post %s", post_id)
    return {"message": "Blog deleted successfully"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=HOST, port=PORT)
