import uuid
from datetime import date, datetime

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from database.base import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow)
    fridge_items = relationship("FridgeItem", back_populates="user")
    posts = relationship("CommunityPost", back_populates="author")

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class FridgeItem(Base):
    __tablename__ = "fridge_items"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    brand = Column(String, nullable=True)
    quantity = Column(Float, default=1.0)
    unit = Column(String, default="pcs")
    category = Column(String, nullable=True)
    location = Column(String, nullable=True)  # fridge / freezer / pantry
    purchase_date = Column(Date, default=date.today)
    expiry_date = Column(Date, nullable=True, index=True)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    user = relationship("User", back_populates="fridge_items")


class CommunityPost(Base):
    __tablename__ = "community_posts"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    likes_count = Column(Integer, nullable=False, default=0, server_default="0")
    comments_count = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    author = relationship("User", back_populates="posts")
    comments = relationship("PostComment", back_populates="post")


class PostLike(Base):
    __tablename__ = "post_likes"
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_post_like"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Uuid, ForeignKey("community_posts.id"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class PostComment(Base):
    __tablename__ = "post_comments"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    post_id = Column(Uuid, ForeignKey("community_posts.id"), nullable=False, index=True)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    post = relationship("CommunityPost", back_populates="comments")


class Follow(Base):
    __tablename__ = "follows"
    __table_args__ = (UniqueConstraint("follower_id", "followee_id", name="uq_follow"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    follower_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    followee_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
