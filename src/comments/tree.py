"""Assembly of flat comment rows into nested reply trees."""

from collections.abc import Iterable
from dataclasses import replace

from .exceptions import CommentTreeIntegrityError
from .models import Comment


def build_comment_tree(comments: Iterable[Comment]) -> list[Comment]:
    """Nest flat comments under their parents.

    Each input comment is copied with an empty ``replies`` list, so the input
    is left untouched. Roots and the replies under any one parent keep the
    relative order of the input. Parents do not have to precede their
    replies in the input.

    Args:
        comments: Flat comments of one post, typically oldest first.

    Returns:
        The root comments, each carrying its replies recursively.

    Raises:
        CommentTreeIntegrityError: On duplicate ids, on replies whose parent
            is not in the input, or on comments unreachable from any root
            (a parent cycle).
    """
    nodes: dict[int, Comment] = {}
    ordered: list[Comment] = []
    duplicates: list[int] = []

    for comment in comments:
        if comment.id in nodes:
            duplicates.append(comment.id)
            continue
        node = replace(comment, replies=[])
        nodes[node.id] = node
        ordered.append(node)

    if duplicates:
        raise CommentTreeIntegrityError(
            f"Duplicate comment ids: {sorted(set(duplicates))}", sorted(set(duplicates))
        )

    roots: list[Comment] = []
    orphans: list[int] = []

    for node in ordered:
        if node.parent_comment_id is None:
            roots.append(node)
            continue
        parent = nodes.get(node.parent_comment_id)
        if parent is None:
            orphans.append(node.id)
            continue
        parent.replies.append(node)

    if orphans:
        raise CommentTreeIntegrityError(
            f"Comments reference parents outside the fetched set: {orphans}", orphans
        )

    reachable = {node.id for node in iter_comments(roots)}
    if len(reachable) != len(ordered):
        unreachable = [node.id for node in ordered if node.id not in reachable]
        raise CommentTreeIntegrityError(
            f"Comments unreachable from any root: {unreachable}", unreachable
        )

    return roots


def iter_comments(roots: Iterable[Comment]) -> Iterable[Comment]:
    """Depth-first walk over a comment forest, parents before replies."""
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.replies))


def count_comments(roots: Iterable[Comment]) -> int:
    """Total number of comments in a forest, replies included."""
    return sum(1 for _ in iter_comments(roots))
