import inspect
import logging
from typing import Any, Dict, List

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore import AsyncClient

from domain.posts import Post
from store.base import (
    ASCENDING, COUNTER_FIELDS, DESCENDING, SORT_BY_DATE, Mutator, PostNotFound, PostStore, SortSpec, matches_query,
)

logger = logging.getLogger('uvicorn.error')

_DIRECTIONS = {
    ASCENDING: firestore.Query.ASCENDING,
    DESCENDING: firestore.Query.DESCENDING,
}


def post_to_document(post: Post) -> Dict[str, Any]:
    # The document key is the id; it is not duplicated in the body.
    return post.model_dump(exclude={"id"})


def post_from_snapshot(doc) -> Post:
    post_data = doc.to_dict()
    post_data['id'] = doc.id
    return Post(**post_data)


class FirestorePostStore(PostStore):
    """Posts stored one document per post in a Firestore collection."""

    def __init__(self, db: AsyncClient, collection: str = "posts"):
        self.db = db
        self.collection_name = collection

    def _collection(self):
        return self.db.collection(self.collection_name)

    def _document(self, post_id: str):
        # Slashes would address a sub-collection path, not a post.
        if not post_id or "/" in post_id:
            raise PostNotFound(post_id)
        try:
            return self._collection().document(post_id)
        except ValueError:
            raise PostNotFound(post_id)

    async def insert(self, post: Post) -> str:
        post_ref = self._collection().document()
        await post_ref.set(post_to_document(post))
        logger.debug(f"Inserted post document '{post_ref.id}' into '{self.collection_name}'")
        return post_ref.id

    async def find_all(self, sort_spec: SortSpec = SORT_BY_DATE) -> List[Post]:
        query = self._collection()
        for field, direction in sort_spec:
            query = query.order_by(field, direction=_DIRECTIONS[direction])
        posts = []
        async for doc in query.stream():
            try:
                posts.append(post_from_snapshot(doc))
            except Exception as validation_error:
                logger.error(f"Data validation error for post doc {doc.id}: {validation_error}")
                continue
        return posts

    async def find_by_id(self, post_id: str) -> Post:
        post_doc = await self._document(post_id).get()
        if not post_doc.exists:
            raise PostNotFound(post_id)
        return post_from_snapshot(post_doc)

    async def increment_counter(self, post_id: str, field: str) -> Post:
        if field not in COUNTER_FIELDS:
            raise ValueError(f"{field!r} is not a counter field")
        post_ref = self._document(post_id)
        try:
            await post_ref.update({field: firestore.Increment(1)})
        except google_exceptions.NotFound:
            raise PostNotFound(post_id)
        # The re-read may already include later increments; the counter only grows.
        post_doc = await post_ref.get()
        return post_from_snapshot(post_doc)

    async def read_modify_write(self, post_id: str, mutator: Mutator) -> Post:
        post_ref = self._document(post_id)

        # Firestore retries the whole function when the document changed under us.
        @firestore.async_transactional
        async def apply_mutation(transaction, ref):
            snapshot = await ref.get(transaction=transaction)
            if not snapshot.exists:
                raise PostNotFound(post_id)
            updated = mutator(post_from_snapshot(snapshot))
            transaction.set(ref, post_to_document(updated))
            return updated.model_copy(update={"id": post_id})

        return await apply_mutation(self.db.transaction(), post_ref)

    async def text_search(self, query: str) -> List[Post]:
        # Firestore has no substring queries, so filter the newest-first stream here.
        posts = await self.find_all(SORT_BY_DATE)
        return [p for p in posts if matches_query(p, query)]

    async def close(self) -> None:
        # AsyncClient.close has been both sync and async across library releases.
        result = self.db.close()
        if inspect.isawaitable(result):
            await result
