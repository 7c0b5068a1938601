# Content service: posts, likes, comments and replies
import logging

from sqlalchemy import distinct

from errors import AuthError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from models import Comment, CommentLike, Like, Post, Reply, db, save_changes
from relationships import can_interact, can_view

logger = logging.getLogger(__name__)


def get_post_or_404(post_id):
    post = db.session.get(Post, post_id)
    if not post:
        raise NotFoundError("Post not found")
    return post


def get_comment_or_404(post, comment_id):
    comment = db.session.get(Comment, comment_id)
    if not comment or comment.post_id != post.post_id:
        raise NotFoundError("Comment not found")
    return comment


def _require_interaction(actor, post):
    if not can_interact(actor, post.author):
        raise AuthorizationError("Invalid Operation")


def _require_text(data, message):
    text = (data or {}).get('text')
    if not isinstance(text, str) or not text.strip():
        raise ValidationError(message)
    return text.strip()


def _optional_text(data, key):
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{key.capitalize()} must be text")
    return value


# Posts

def create_post(actor, data):
    data = data or {}
    media = data.get('media')
    if not isinstance(media, list) or not media:
        raise ValidationError("Posts must contain at least one media file")
    if not all(isinstance(item, str) and item for item in media):
        raise ValidationError("Media entries must be non-empty strings")

    post = Post(
        user_id=actor.user_id,
        caption=_optional_text(data, 'caption'),
        location=_optional_text(data, 'location'),
        media=media,
    )
    db.session.add(post)
    save_changes()
    logger.info("User %s created post %s", actor.user_id, post.post_id)
    return post


def list_own_posts(actor):
    return actor.posts.order_by(Post.created_at.desc(), Post.post_id.desc()).all()


def view_post(actor, post_id):
    post = get_post_or_404(post_id)
    if not can_view(actor, post.author):
        raise AuthorizationError("Invalid Operation")
    return post


def update_post(actor, post_id, data):
    post = get_post_or_404(post_id)
    if post.user_id != actor.user_id:
        raise AuthError("Post not found or unauthorized access")

    data = data or {}
    if 'caption' in data:
        post.caption = _optional_text(data, 'caption')
    if 'location' in data:
        post.location = _optional_text(data, 'location')
    save_changes()
    return post


def delete_post(actor, post_id):
    post = get_post_or_404(post_id)
    if post.user_id != actor.user_id:
        raise AuthError("Post not found or unauthorized access")

    db.session.delete(post)
    save_changes()
    logger.info("User %s deleted post %s", actor.user_id, post_id)


def like_post(actor, post_id):
    post = get_post_or_404(post_id)
    _require_interaction(actor, post)
    if any(like.user_id == actor.user_id for like in post.likes):
        raise ConflictError("Post already liked")

    post.likes.append(Like(user_id=actor.user_id))
    save_changes(conflict_message="Post already liked")
    return post


def unlike_post(actor, post_id):
    post = get_post_or_404(post_id)
    _require_interaction(actor, post)

    like = next((like for like in post.likes if like.user_id == actor.user_id), None)
    if not like:
        raise ConflictError("Post not liked yet")

    post.likes.remove(like)
    save_changes()
    return post


def feed(actor):
    """Posts by ``actor`` and the accounts it follows, newest first.

    Returns ``(post, likes_count, comments_count, is_liked_by_me)`` tuples.
    """
    authors = actor.following_ids | {actor.user_id}

    results = db.session.query(
        Post,
        db.func.count(distinct(Like.like_id)).label('likes_count'),
        db.func.count(distinct(Comment.comment_id)).label('comments_count'),
    ).outerjoin(Like, Like.post_id == Post.post_id)\
     .outerjoin(Comment, Comment.post_id == Post.post_id)\
     .filter(Post.user_id.in_(authors))\
     .group_by(Post.post_id)\
     .order_by(Post.created_at.desc(), Post.post_id.desc())\
     .all()

    liked = {
        post_id for (post_id,) in db.session.query(Like.post_id).filter(
            Like.user_id == actor.user_id,
            Like.post_id.in_([post.post_id for post, _, _ in results]),
        )
    }
    return [
        (post, int(likes_count), int(comments_count), post.post_id in liked)
        for post, likes_count, comments_count in results
    ]


# Comments and replies

def add_comment(actor, post_id, data):
    post = get_post_or_404(post_id)
    text = _require_text(data, "Comment text is required")
    _require_interaction(actor, post)

    post.comments.append(Comment(user_id=actor.user_id, text=text))
    save_changes()
    logger.info("User %s commented on post %s", actor.user_id, post_id)
    return post


def like_comment(actor, post_id, comment_id):
    post = get_post_or_404(post_id)
    comment = get_comment_or_404(post, comment_id)
    _require_interaction(actor, post)

    if any(like.user_id == actor.user_id for like in comment.likes):
        raise ConflictError("Comment already liked")

    comment.likes.append(CommentLike(user_id=actor.user_id))
    save_changes(conflict_message="Comment already liked")
    return comment


def unlike_comment(actor, post_id, comment_id):
    post = get_post_or_404(post_id)
    comment = get_comment_or_404(post, comment_id)
    _require_interaction(actor, post)

    like = next((like for like in comment.likes if like.user_id == actor.user_id), None)
    if not like:
        raise ConflictError("Comment not liked yet")

    comment.likes.remove(like)
    save_changes()
    return comment


def reply_to_comment(actor, post_id, comment_id, data):
    post = get_post_or_404(post_id)
    comment = get_comment_or_404(post, comment_id)
    text = _require_text(data, "Reply text is required")
    _require_interaction(actor, post)

    comment.replies.append(Reply(user_id=actor.user_id, text=text))
    save_changes()
    return comment


def delete_comment(actor, post_id, comment_id):
    """Delete a comment along with its replies and likes.

    Allowed for the comment author and the post author.
    """
    post = get_post_or_404(post_id)
    comment = get_comment_or_404(post, comment_id)
    if actor.user_id not in (comment.user_id, post.user_id):
        raise AuthError("Invalid Operation / Access Denied")

    post.comments.remove(comment)
    save_changes()
    logger.info("User %s deleted comment %s", actor.user_id, comment_id)
    return post
