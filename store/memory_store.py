import asyncio
import uuid
from collections import defaultdict
from typing import Dict, List

from domain.posts import Post
from store.base import (
    COUNTER_FIELDS, DESCENDING, SORT_BY_DATE, Mutator, PostNotFound, PostStore, SortSpec, matches_query,
)


class InMemoryPostStore(PostStore):
    """Process-local store used for development, tests and as a startup fallback.

    Updates to one post are serialized by a per-post ``asyncio.Lock``. Every
    returned post is a deep copy, so callers can never mutate stored state.
    """

    def __init__(self) -> None:
        self._posts: Dict[str, Post] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def insert(self, post: Post) -> str:
        post_id = uuid.uuid4().hex
        self._posts[post_id] = post.model_copy(update={"id": post_id}, deep=True)
        return post_id

    async def find_all(self, sort_spec: SortSpec = SORT_BY_DATE) -> List[Post]:
        posts = [p.model_copy(deep=True) for p in self._posts.values()]
        # Stable sorts applied from the least significant key up.
        for field, direction in reversed(sort_spec):
            posts.sort(key=lambda p: getattr(p, field), reverse=direction == DESCENDING)
        return posts

    async def find_by_id(self, post_id: str) -> Post:
        post = self._posts.get(post_id)
        if post is None:
            raise PostNotFound(post_id)
        return post.model_copy(deep=True)

    async def increment_counter(self, post_id: str, field: str) -> Post:
        if field not in COUNTER_FIELDS:
            raise ValueError(f"{field!r} is not a counter field")
        if post_id not in self._posts:
            raise PostNotFound(post_id)
        async with self._locks[post_id]:
            stored = self._posts[post_id]
            updated = stored.model_copy(update={field: getattr(stored, field) + 1})
            self._posts[post_id] = updated
            return updated.model_copy(deep=True)

    async def read_modify_write(self, post_id: str, mutator: Mutator) -> Post:
        if post_id not in self._posts:
            raise PostNotFound(post_id)
        async with self._locks[post_id]:
            current = self._posts[post_id].model_copy(deep=True)
            updated = mutator(current)
            # Identity is fixed once assigned.
            updated = updated.model_copy(update={"id": post_id}, deep=True)
            self._posts[post_id] = updated
            return updated.model_copy(deep=True)

    async def text_search(self, query: str) -> List[Post]:
        posts = await self.find_all(SORT_BY_DATE)
        return [p for p in posts if matches_query(p, query)]
