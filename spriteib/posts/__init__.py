"""
Posts Module

Post documents, violation codes and the validation rules applied to new
threads and comments.
"""

from spriteib.posts.models import Comment, PostBody, Thread, listing_id, primary_id_from_listing
from spriteib.posts.status import PostStatus, StatusRecord
from spriteib.posts.validation import validate_new_post, validate_reply_target, validate_requester

__all__ = [
    "Comment",
    "PostBody",
    "PostStatus",
    "StatusRecord",
    "Thread",
    "listing_id",
    "primary_id_from_listing",
    "validate_new_post",
    "validate_reply_target",
    "validate_requester",
]
