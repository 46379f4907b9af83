"""
fleetdesk.api.routers.posts

Posts: public reads (optionally authenticated), owner-or-privileged writes.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED, HTTP_404_NOT_FOUND

from fleetdesk.api.deps import db_session
from fleetdesk.auth import guard
from fleetdesk.auth.deps import get_optional_principal, get_principal
from fleetdesk.auth.models import Principal, normalize_id
from fleetdesk.db.models import Post, User
from fleetdesk.db.repositories.posts import PostRepo

router = APIRouter(prefix="/v1/posts", tags=["posts"])


class AuthorOut(BaseModel):
    id: int
    username: str
    name: str | None

    @classmethod
    def from_row(cls, user: User) -> AuthorOut:
        return cls(id=user.id, username=user.username, name=user.name)


class PostCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)


class PostUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    content: str | None = Field(default=None, min_length=1)


class PostOut(BaseModel):
    id: int
    title: str
    content: str
    user_id: int
    author: AuthorOut
    created_at: datetime
    updated_at: datetime
    viewer_is_author: bool = False

    @classmethod
    def from_row(cls, post: Post, viewer: Principal | None = None) -> PostOut:
        return cls(
            id=post.id,
            title=post.title,
            content=post.content,
            user_id=post.user_id,
            author=AuthorOut.from_row(post.author),
            created_at=post.created_at,
            updated_at=post.updated_at,
            viewer_is_author=viewer is not None and normalize_id(viewer.id) == normalize_id(post.user_id),
        )


async def _get_or_404(session: AsyncSession, post_id: int) -> Post:
    post = await PostRepo(session).get(post_id)
    if post is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Post not found")
    return post


@router.get("", response_model=list[PostOut])
async def list_posts(
    viewer: Principal | None = Depends(get_optional_principal),
    session: AsyncSession = Depends(db_session),
) -> list[PostOut]:
    return [PostOut.from_row(p, viewer) for p in await PostRepo(session).list_all()]


@router.get("/{post_id}", response_model=PostOut)
async def get_post(
    post_id: int,
    viewer: Principal | None = Depends(get_optional_principal),
    session: AsyncSession = Depends(db_session),
) -> PostOut:
    return PostOut.from_row(await _get_or_404(session, post_id), viewer)


@router.post("", response_model=PostOut, status_code=HTTP_201_CREATED)
async def create_post(
    body: PostCreateRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> PostOut:
    post = await PostRepo(session).create(title=body.title, content=body.content, user_id=principal.id)
    await session.commit()
    await session.refresh(post, ["author"])
    return PostOut.from_row(post, principal)


@router.put("/{post_id}", response_model=PostOut)
async def update_post(
    post_id: int,
    body: PostUpdateRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> PostOut:
    post = await _get_or_404(session, post_id)
    guard.check_owner_or_privileged(principal, post.user_id)
    post = await PostRepo(session).patch(post, title=body.title, content=body.content)
    await session.commit()
    return PostOut.from_row(post, principal)


@router.delete("/{post_id}")
async def delete_post(
    post_id: int,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> dict[str, str]:
    post = await _get_or_404(session, post_id)
    guard.check_owner_or_privileged(principal, post.user_id)
    await PostRepo(session).delete(post)
    await session.commit()
    return {"message": "Post deleted"}


# --- Module Notes -----------------------------------------------------------
# Lookup precedes the ownership check, so a missing post is a 404 for everyone.
