from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.db.models import Comment, Post


class PostRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self) -> list[Post]:
        stmt = select(Post).order_by(Post.created_at.desc(), Post.id.desc())
        return list((await self._session.execute(stmt)).unique().scalars().all())

    async def get(self, post_id: int) -> Post | None:
        return await self._session.get(Post, post_id)

    async def create(self, *, title: str, content: str, user_id: int) -> Post:
        post = Post(title=title, content=content, user_id=user_id)
        self._session.add(post)
        await self._session.flush()
        return post

    async def patch(self, post: Post, *, title: str | None, content: str | None) -> Post:
        if title is not None:
            post.title = title
        if content is not None:
            post.content = content
        await self._session.flush()
        return post

    async def delete(self, post: Post) -> None:
        await self._session.delete(post)
        await self._session.flush()


class CommentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self, *, post_id: int | None = None) -> list[Comment]:
        stmt = select(Comment).order_by(Comment.created_at.desc(), Comment.id.desc())
        if post_id is not None:
            stmt = stmt.where(Comment.post_id == post_id)
        return list((await self._session.execute(stmt)).unique().scalars().all())

    async def get(self, comment_id: int) -> Comment | None:
        return await self._session.get(Comment, comment_id)

    async def create(self, *, post_id: int, user_id: int, content: str) -> Comment:
        comment = Comment(post_id=post_id, user_id=user_id, content=content)
        self._session.add(comment)
        await self._session.flush()
        return comment

    async def delete(self, comment: Comment) -> None:
        await self._session.delete(comment)
        await self._session.flush()
