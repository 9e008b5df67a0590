class ForumValidationError(ValueError):
    """A required field is missing, empty, or out of bounds."""


class PostNotFound(LookupError):
    """No post exists for the given identifier (malformed ids included)."""

    def __init__(self, post_id: str):
        super().__init__(f"Post with id {post_id} not found")
        self.post_id = post_id
