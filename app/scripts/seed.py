"""Seed sample articles and tasks.

Usage:
    python -m app.scripts.seed

Idempotent: articles already present (by project name) are left alone.
"""

import asyncio

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.game import TaskFrequency
from app.models.base import get_task_session
from app.models.domain import Article, Task

logger = structlog.get_logger(__name__)

SAMPLE_ARTICLES = [
    {
        "title": "LayerZero Airdrop Guide",
        "description": "Cross-chain messaging protocol. Bridge regularly to stay eligible.",
        "project_name": "LayerZero",
        "tasks": [
            ("Bridge assets via Stargate", "Send a small amount across two chains", TaskFrequency.DAILY, "https://stargate.finance"),
            ("Vote on governance proposal", None, TaskFrequency.WEEKLY, "https://snapshot.org"),
            ("Mint the pass NFT", "One mint per wallet", TaskFrequency.ONE_TIME, None),
        ],
    },
    {
        "title": "zkSync Era Farming",
        "description": "Ethereum L2 rollup with an expected second season.",
        "project_name": "zkSync",
        "tasks": [
            ("Swap on SyncSwap", None, TaskFrequency.DAILY, "https://syncswap.xyz"),
            ("Provide liquidity", "Keep a position open for the week", TaskFrequency.WEEKLY, None),
            ("Register a .zk domain", None, TaskFrequency.ONE_TIME, None),
        ],
    },
    {
        "title": "Scroll Sessions",
        "description": "zkEVM rollup running a points campaign.",
        "project_name": "Scroll",
        "tasks": [
            ("Daily check-in", None, TaskFrequency.DAILY, "https://scroll.io/sessions"),
            ("Deploy a contract", None, TaskFrequency.ONE_TIME, None),
        ],
    },
]


async def seed(session: AsyncSession) -> int:
    """Insert missing sample articles. Returns how many were created."""
    existing = set(await session.scalars(select(Article.project_name)))
    created = 0

    for entry in SAMPLE_ARTICLES:
        if entry["project_name"] in existing:
            continue
        article = Article(
            title=entry["title"],
            description=entry["description"],
            project_name=entry["project_name"],
        )
        for title, description, frequency, link_url in entry["tasks"]:
            article.tasks.append(
                Task(
                    title=title,
                    description=description,
                    frequency=frequency.value,
                    link_url=link_url,
                )
            )
        session.add(article)
        created += 1

    await session.commit()
    logger.info("seed_complete", articles_created=created)
    return created


async def main() -> None:
    async with get_task_session() as session:
        await seed(session)


if __name__ == "__main__":
    asyncio.run(main())
