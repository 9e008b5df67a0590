"""Post mutations paired with their broadcasts.

Every mutating operation persists first and announces second: the event is
published only after the store call returned, so a failed write never reaches
any client. Store errors propagate to the caller unchanged.
"""

import logging
from typing import List, Optional

from config import MAX_TITLE_LENGTH
from domain.errors import ForumValidationError
from domain.events import NewPost, NewReply, PostAnswered, PostUpvoted
from domain.posts import Post, Reply, utc_now
from services.broadcast import BroadcastBus
from store.base import SORT_BY_DATE, SORT_BY_VOTES, PostStore

logger = logging.getLogger('uvicorn.error')

SORT_KEYS = {
    "date": SORT_BY_DATE,
    "votes": SORT_BY_VOTES,
}


def _require(**fields: Optional[str]) -> dict:
    """Strip every field; fail if any of them ends up empty."""
    cleaned = {name: (value or "").strip() for name, value in fields.items()}
    if not all(cleaned.values()):
        names = list(fields)
        joiner = ", and " if len(names) > 2 else " and "
        required = ", ".join(names[:-1]) + joiner + names[-1]
        raise ForumValidationError(f"{required.capitalize()} are required")
    return cleaned


class PostService:

    def __init__(self, store: PostStore, bus: BroadcastBus):
        self.store = store
        self.bus = bus

    async def create_post(self, title: Optional[str], content: Optional[str], author: Optional[str]) -> Post:
        fields = _require(title=title, content=content, author=author)
        if len(fields["title"]) > MAX_TITLE_LENGTH:
            raise ForumValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")

        post = Post(**fields, votes=0, isAnswered=False, replies=[], createdAt=utc_now())
        post_id = await self.store.insert(post)
        post = post.model_copy(update={"id": post_id})
        logger.info(f"'{post.author}' created post '{post_id}'")

        self.bus.publish(NewPost(post=post))
        return post

    async def add_reply(self, post_id: str, content: Optional[str], author: Optional[str]) -> Post:
        fields = _require(content=content, author=author)
        # Built once, outside the mutator, so a retried transaction appends the same reply.
        reply = Reply(content=fields["content"], author=fields["author"], createdAt=utc_now())

        def append_reply(post: Post) -> Post:
            return post.model_copy(update={"replies": [*post.replies, reply]})

        post = await self.store.read_modify_write(post_id, append_reply)
        logger.info(f"'{reply.author}' replied '{reply.id}' on post '{post.id}'")

        self.bus.publish(NewReply(postId=post.id, reply=reply))
        return post

    async def upvote(self, post_id: str) -> Post:
        post = await self.store.increment_counter(post_id, "votes")
        logger.info(f"Post '{post.id}' upvoted to {post.votes}")

        self.bus.publish(PostUpvoted(postId=post.id, votes=post.votes))
        return post

    async def toggle_answered(self, post_id: str) -> Post:
        def flip_answered(post: Post) -> Post:
            return post.model_copy(update={"isAnswered": not post.isAnswered})

        post = await self.store.read_modify_write(post_id, flip_answered)
        logger.info(f"Post '{post.id}' marked {'answered' if post.isAnswered else 'unanswered'}")

        self.bus.publish(PostAnswered(postId=post.id, isAnswered=post.isAnswered))
        return post

    async def get_post(self, post_id: str) -> Post:
        return await self.store.find_by_id(post_id)

    async def list_posts(self, sort_key: Optional[str] = "date") -> List[Post]:
        sort_spec = SORT_KEYS.get((sort_key or "").strip().lower(), SORT_BY_DATE)
        return await self.store.find_all(sort_spec)

    async def search_posts(self, query: Optional[str]) -> List[Post]:
        if not query or not query.strip():
            return await self.list_posts("date")
        return await self.store.text_search(query.strip())
