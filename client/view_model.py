"""Client-side cache of posts and the reducer that merges broadcast events into it.

The merge rules make delivery hazards harmless:

* ``newPost`` and ``newReply`` are deduplicated by id.
* ``postUpvoted`` and ``postAnswered`` set absolute values, so applying an
  event twice changes nothing.
* ``postUpvoted`` is stricter than a plain absolute set: votes only grow, so a
  count lower than the cached one is a late, stale event and is ignored.
  Without this, an out-of-order pair of upvotes would leave the lower count.
* Events about posts that are not cached are ignored.

Frames read straight off the /events socket go through ``apply_frame``.
"""

import logging
from typing import Any, Dict, List, Optional

from domain.events import BroadcastEvent, NewPost, NewReply, PostAnswered, PostUpvoted, event_from_wire
from domain.posts import Post
from store.base import matches_query

logger = logging.getLogger(__name__)


class ClientViewModel:

    def __init__(self) -> None:
        self.posts: List[Post] = []
        self.detail: Optional[Post] = None

    # --- Snapshots ---
    def load_posts(self, posts: List[Post]) -> None:
        """Replace the list cache with a freshly fetched snapshot."""
        self.posts = [p.model_copy(deep=True) for p in posts]

    def open_post(self, post: Post) -> None:
        self.detail = post.model_copy(deep=True)

    def close_post(self) -> None:
        self.detail = None

    def find(self, post_id: str) -> Optional[Post]:
        return next((p for p in self.posts if p.id == post_id), None)

    def visible_posts(self, query: Optional[str] = None) -> List[Post]:
        if not query or not query.strip():
            return list(self.posts)
        return [p for p in self.posts if matches_query(p, query.strip())]

    # --- Reducer ---
    def apply(self, event: BroadcastEvent) -> bool:
        """Merge one event into the cache. Returns True if anything changed."""
        if isinstance(event, NewPost):
            return self._on_new_post(event)
        if isinstance(event, PostUpvoted):
            return self._patch(event.postId, votes=event.votes)
        if isinstance(event, PostAnswered):
            return self._patch(event.postId, isAnswered=event.isAnswered)
        if isinstance(event, NewReply):
            return self._on_new_reply(event)
        raise TypeError(f"Unhandled event type {type(event).__name__}")

    def apply_frame(self, frame: Dict[str, Any]) -> bool:
        """Decode a raw {"event", "data"} frame and merge it.

        Raises:
            ValueError: the frame is not a known, well-formed event.
        """
        return self.apply(event_from_wire(frame))

    def _on_new_post(self, event: NewPost) -> bool:
        if self.find(event.post.id) is not None:
            return False
        self.posts.insert(0, event.post.model_copy(deep=True))
        return True

    def _on_new_reply(self, event: NewReply) -> bool:
        if self.detail is None or self.detail.id != event.postId:
            return False
        if any(r.id == event.reply.id for r in self.detail.replies):
            return False
        self.detail = self.detail.model_copy(update={"replies": [*self.detail.replies, event.reply]})
        return True

    def _patch(self, post_id: str, **changes) -> bool:
        changed = False
        for index, post in enumerate(self.posts):
            if post.id == post_id:
                updated = self._merge(post, changes)
                if updated is not post:
                    self.posts[index] = updated
                    changed = True
                break
        if self.detail is not None and self.detail.id == post_id:
            updated = self._merge(self.detail, changes)
            if updated is not self.detail:
                self.detail = updated
                changed = True
        if not changed:
            logger.debug(f"Event for post '{post_id}' left the view unchanged")
        return changed

    @staticmethod
    def _merge(post: Post, changes: dict) -> Post:
        votes = changes.get("votes")
        if votes is not None and votes < post.votes:
            changes = {k: v for k, v in changes.items() if k != "votes"}
        if all(getattr(post, k) == v for k, v in changes.items()):
            return post
        return post.model_copy(update=changes)
