"""
Thread persistence.

A thread keeps its whole conversation as one JSON array, so growing the log
is always read, append, write back. Every write bumps `version`; passing
`expected_version` makes the write conditional on nobody else having written
in between.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, desc
from typing import Iterable, List, Optional, Sequence, Union
import logging

from ..errors import NotFoundError, ThreadConflictError
from ..models.thread import Thread
from ..schemas.thread import StoredMessage, dump_messages, parse_messages
from ..utils.time import utcnow


logger = logging.getLogger(__name__)


class ThreadStore:
    """CRUD over the threads table."""

    UPDATABLE_FIELDS = ("title", "messages", "llm_provider", "llm_model_version")

    def __init__(self, db: AsyncSession, write_retries: int = 3):
        self.db = db
        self.write_retries = max(1, write_retries)

    @staticmethod
    def _serialize(messages: Union[str, Sequence[StoredMessage]]) -> str:
        """Validate a log before it is written; always returns a JSON array."""
        if isinstance(messages, str):
            return dump_messages(parse_messages(messages))
        return dump_messages([
            m if isinstance(m, StoredMessage) else StoredMessage.model_validate(m)
            for m in messages
        ])

    @staticmethod
    def load_messages(thread: Thread) -> List[StoredMessage]:
        return parse_messages(thread.messages)

    async def create(
        self,
        owner_id: int,
        title: str = "New Conversation",
        messages: Union[str, Sequence[StoredMessage]] = "[]",
        provider: str = "openai",
        model_version: Optional[str] = None,
        is_public: bool = False
    ) -> Thread:
        """Create a thread, empty unless an initial log is given."""
        thread = Thread(
            user_id=owner_id,
            title=title,
            messages=self._serialize(messages),
            llm_provider=provider,
            llm_model_version=model_version,
            public=is_public
        )
        self.db.add(thread)
        await self.db.commit()
        await self.db.refresh(thread)
        return thread

    async def get_by_id(self, thread_id: int) -> Optional[Thread]:
        result = await self.db.execute(
            select(Thread)
            .filter(Thread.id == thread_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_uuid(self, thread_uuid: str) -> Optional[Thread]:
        result = await self.db.execute(
            select(Thread)
            .filter(Thread.uuid == thread_uuid)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_owner(self, owner_id: int) -> List[Thread]:
        """Owner's threads, most recently updated first."""
        result = await self.db.execute(
            select(Thread)
            .filter(Thread.user_id == owner_id)
            .order_by(desc(Thread.updated_at), desc(Thread.id))
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def update_by_uuid(
        self,
        thread_uuid: str,
        expected_version: Optional[int] = None,
        **fields
    ) -> Optional[Thread]:
        """
        Overwrite any of title, messages, llm_provider, llm_model_version.

        Returns the refreshed thread, or None when no thread has that uuid.
        Raises ThreadConflictError when `expected_version` no longer matches.
        """
        unknown = set(fields) - set(self.UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update thread fields: {', '.join(sorted(unknown))}")

        if "messages" in fields:
            fields["messages"] = self._serialize(fields["messages"])

        stmt = update(Thread).where(Thread.uuid == thread_uuid)
        if expected_version is not None:
            stmt = stmt.where(Thread.version == expected_version)

        result = await self.db.execute(
            stmt.values(**fields, updated_at=utcnow(), version=Thread.version + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        if result.rowcount == 0:
            if expected_version is not None and await self.get_by_uuid(thread_uuid) is not None:
                raise ThreadConflictError(f"Thread {thread_uuid} was modified concurrently")
            return None

        return await self.get_by_uuid(thread_uuid)

    async def append_messages(
        self,
        thread_uuid: str,
        new_messages: Iterable[StoredMessage],
        **fields
    ) -> Thread:
        """Append to the log, re-reading and re-applying if another writer got there first."""
        new_messages = list(new_messages)

        for attempt in range(1, self.write_retries + 1):
            thread = await self.get_by_uuid(thread_uuid)
            if thread is None:
                raise NotFoundError("Thread not found")

            messages = self.load_messages(thread) + new_messages
            try:
                return await self.update_by_uuid(
                    thread_uuid,
                    expected_version=thread.version,
                    messages=messages,
                    **fields
                )
            except ThreadConflictError:
                logger.warning(
                    "Concurrent write on thread %s (attempt %d/%d)",
                    thread_uuid, attempt, self.write_retries
                )

        raise ThreadConflictError(f"Thread {thread_uuid} is being modified concurrently, try again")

    async def delete_by_uuid(self, thread_uuid: str) -> bool:
        result = await self.db.execute(
            delete(Thread)
            .where(Thread.uuid == thread_uuid)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def set_public(self, thread_uuid: str) -> Optional[Thread]:
        """Mark a thread as shared; calling it again is a no-op apart from the timestamp."""
        result = await self.db.execute(
            update(Thread)
            .where(Thread.uuid == thread_uuid)
            .values(public=True, updated_at=utcnow(), version=Thread.version + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount == 0:
            return None
        return await self.get_by_uuid(thread_uuid)

    async def count_user_messages(self, owner_id: int) -> int:
        """Number of user-typed messages across all of an owner's threads."""
        result = await self.db.execute(
            select(Thread.uuid, Thread.messages).filter(Thread.user_id == owner_id)
        )
        count = 0
        for thread_uuid, raw in result.all():
            try:
                messages = parse_messages(raw)
            except ValueError:
                logger.error("Thread %s has an unreadable message log", thread_uuid)
                continue
            count += sum(1 for m in messages if m.is_user)
        return count
