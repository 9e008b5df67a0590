"""Broadcast events pushed to every connected client after a committed mutation.

Each event kind is its own model tagged by the ``event`` literal, so producers
and consumers switch on a closed set. On the wire an event is a frame::

    {"event": "postUpvoted", "data": {"postId": "...", "votes": 7}}

where ``data`` for ``newPost`` is the full post object.
"""

from typing import Annotated, Any, Dict, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from domain.posts import Post, Reply


class NewPost(BaseModel):
    event: Literal["newPost"] = "newPost"
    post: Post

    def data(self) -> Dict[str, Any]:
        return self.post.model_dump(mode='json')


class NewReply(BaseModel):
    event: Literal["newReply"] = "newReply"
    postId: str
    reply: Reply

    def data(self) -> Dict[str, Any]:
        return {"postId": self.postId, "reply": self.reply.model_dump(mode='json')}


class PostUpvoted(BaseModel):
    event: Literal["postUpvoted"] = "postUpvoted"
    postId: str
    votes: int

    def data(self) -> Dict[str, Any]:
        return {"postId": self.postId, "votes": self.votes}


class PostAnswered(BaseModel):
    event: Literal["postAnswered"] = "postAnswered"
    postId: str
    isAnswered: bool

    def data(self) -> Dict[str, Any]:
        return {"postId": self.postId, "isAnswered": self.isAnswered}


BroadcastEvent = Annotated[
    Union[NewPost, NewReply, PostUpvoted, PostAnswered],
    Field(discriminator="event"),
]

_event_adapter = TypeAdapter(BroadcastEvent)


def event_to_wire(event: BroadcastEvent) -> Dict[str, Any]:
    return {"event": event.event, "data": event.data()}


def event_from_wire(frame: Dict[str, Any]) -> BroadcastEvent:
    """Decode a wire frame back into its event model.

    The decoding half of the /events wire format, for consumers reading raw
    frames (``ClientViewModel.apply_frame``).

    Raises:
        ValueError: unknown event name or a payload that does not validate.
    """
    name = frame.get("event")
    data = frame.get("data")
    if not isinstance(data, dict):
        raise ValueError(f"Event frame {name!r} carries no data object")
    if name == "newPost":
        # newPost ships the bare post as its payload
        return _event_adapter.validate_python({"event": name, "post": data})
    if name in ("newReply", "postUpvoted", "postAnswered"):
        return _event_adapter.validate_python({"event": name, **data})
    raise ValueError(f"Unknown event {name!r}")
