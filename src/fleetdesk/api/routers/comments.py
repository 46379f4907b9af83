"""
fleetdesk.api.routers.comments

Comments on posts: public reads, authenticated create, owner-or-privileged delete.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED, HTTP_404_NOT_FOUND

from fleetdesk.api.deps import db_session
from fleetdesk.api.routers.posts import AuthorOut
from fleetdesk.auth import guard
from fleetdesk.auth.deps import get_principal
from fleetdesk.auth.models import Principal
from fleetdesk.db.models import Comment
from fleetdesk.db.repositories.posts import CommentRepo, PostRepo

router = APIRouter(prefix="/v1/comments", tags=["comments"])


class CommentCreateRequest(BaseModel):
    post_id: int
    content: str = Field(min_length=1)


class CommentOut(BaseModel):
    id: int
    post_id: int
    user_id: int
    content: str
    author: AuthorOut
    created_at: datetime

    @classmethod
    def from_row(cls, comment: Comment) -> CommentOut:
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            user_id=comment.user_id,
            content=comment.content,
            author=AuthorOut.from_row(comment.author),
            created_at=comment.created_at,
        )


@router.get("", response_model=list[CommentOut])
async def list_comments(
    post_id: int | None = None,
    session: AsyncSession = Depends(db_session),
) -> list[CommentOut]:
    return [CommentOut.from_row(c) for c in await CommentRepo(session).list_all(post_id=post_id)]


@router.post("", response_model=CommentOut, status_code=HTTP_201_CREATED)
async def create_comment(
    body: CommentCreateRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> CommentOut:
    if await PostRepo(session).get(body.post_id) is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Post not found")
    comment = await CommentRepo(session).create(
        post_id=body.post_id, user_id=principal.id, content=body.content
    )
    await session.commit()
    await session.refresh(comment, ["author"])
    return CommentOut.from_row(comment)


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> dict[str, str]:
    comments = CommentRepo(session)
    comment = await comments.get(comment_id)
    if comment is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Comment not found")
    guard.check_owner_or_privileged(principal, comment.user_id)
    await comments.delete(comment)
    await session.commit()
    return {"message": "Comment deleted"}
