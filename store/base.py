"""Storage contract for posts.

Both backends honour the same guarantees:

* ``increment_counter`` is atomic: N concurrent calls on one post add exactly N.
* ``read_modify_write`` applies ``mutator`` to the current post and stores the
  result without losing a concurrent update on the same post.
* Unknown and malformed identifiers raise ``PostNotFound``.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Tuple

from domain.errors import PostNotFound
from domain.posts import Post

ASCENDING = "ASCENDING"
DESCENDING = "DESCENDING"

SortSpec = Tuple[Tuple[str, str], ...]

SORT_BY_DATE: SortSpec = (("createdAt", DESCENDING),)
SORT_BY_VOTES: SortSpec = (("votes", DESCENDING), ("createdAt", DESCENDING))

COUNTER_FIELDS = frozenset({"votes"})

Mutator = Callable[[Post], Post]

__all__ = [
    "ASCENDING",
    "COUNTER_FIELDS",
    "DESCENDING",
    "Mutator",
    "PostNotFound",
    "PostStore",
    "SORT_BY_DATE",
    "SORT_BY_VOTES",
    "SortSpec",
    "matches_query",
]


def matches_query(post: Post, query: str) -> bool:
    """Case-insensitive literal substring match on title, content or author."""
    needle = query.casefold()
    return any(needle in value.casefold() for value in (post.title, post.content, post.author))


class PostStore(ABC):

    @abstractmethod
    async def insert(self, post: Post) -> str:
        """Persist a new post and return its assigned id."""

    @abstractmethod
    async def find_all(self, sort_spec: SortSpec = SORT_BY_DATE) -> List[Post]:
        ...

    @abstractmethod
    async def find_by_id(self, post_id: str) -> Post:
        ...

    @abstractmethod
    async def increment_counter(self, post_id: str, field: str) -> Post:
        ...

    @abstractmethod
    async def read_modify_write(self, post_id: str, mutator: Mutator) -> Post:
        ...

    @abstractmethod
    async def text_search(self, query: str) -> List[Post]:
        """Posts matching ``query`` (see ``matches_query``), newest first."""

    async def close(self) -> None:
        pass
