"""Comment errors.

Every error carries a ``code`` that the router maps to an HTTP status.
"""


class CommentError(Exception):
    """Base comment error."""

    def __init__(self, message: str, code: str = "comment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CommentValidationError(CommentError):
    """Missing or malformed input (author, text, post id, parent)."""

    def __init__(self, message: str = "Text and author are required"):
        super().__init__(message, "validation_error")


class CommentPostNotFoundError(CommentError):
    """The post being commented on does not exist."""

    def __init__(self, post_id: int):
        self.post_id = post_id
        super().__init__(f"Post {post_id} not found", "post_not_found")


class CommentTreeIntegrityError(CommentError):
    """Fetched rows do not form a forest.

    Raised for replies whose parent is missing from the fetched set, duplicate
    ids, and comments that cannot be reached from any root.
    """

    def __init__(self, message: str, comment_ids: list[int]):
        self.comment_ids = comment_ids
        super().__init__(message, "data_integrity_error")


class CommentStoreUnavailableError(CommentError):
    """The relational store failed to answer."""

    def __init__(self, message: str = "Server error"):
        super().__init__(message, "store_unavailable")
