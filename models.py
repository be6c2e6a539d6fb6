"""SQLAlchemy models for the users and blog tables."""
from sqlalchemy import Column, Integer, String, Text, ForeignKey
from sqlalchemy.orm import relationship
from database import Base


class User(Base):
    """Registered account. The password hash never leaves the server."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column("password", String(255), nullable=False)
    name = Column(String(100))
    picture = Column(String(255), nullable=True)

    posts = relationship("Post", back_populates="owner")


class Post(Base):
    """Blog post owned by the user who created it."""
    __tablename__ = "blog"

    id = Column("blogid", Integer, primary_key=True, index=True)
    user_id = Column("userid", Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255))
    detail = Column(Text)
    category = Column(String(100))

    owner = relationship("User", back_populates="posts")
