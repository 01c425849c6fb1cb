"""Article catalogue API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.dependencies import get_db
from app.models.domain import Article

router = APIRouter(prefix="/api/articles", tags=["articles"])


class TaskItem(BaseModel):
    """Task within an article."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    article_id: int
    title: str
    description: str | None = None
    frequency: str
    link_url: str | None = None


class ArticleResponse(BaseModel):
    """Article with its tasks."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    project_name: str
    created_at: datetime
    updated_at: datetime
    tasks: list[TaskItem]


@router.get("", response_model=list[ArticleResponse])
async def list_articles(db: AsyncSession = Depends(get_db)):
    """All articles, newest first, with their tasks."""
    result = await db.scalars(
        select(Article)
        .options(selectinload(Article.tasks))
        .order_by(Article.created_at.desc(), Article.id.desc())
    )
    return [ArticleResponse.model_validate(a) for a in result]


@router.get("/{article_id}", response_model=ArticleResponse)
async def get_article(article_id: int, db: AsyncSession = Depends(get_db)):
    """One article with its tasks."""
    article = await db.scalar(
        select(Article)
        .where(Article.id == article_id)
        .options(selectinload(Article.tasks))
    )
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return ArticleResponse.model_validate(article)
