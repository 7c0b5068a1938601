# Database models
import logging
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import ConflictError, InternalError

logger = logging.getLogger(__name__)

db = SQLAlchemy()


def utcnow():
    # Naive UTC, the way the DateTime columns store it
    return datetime.now(timezone.utc).replace(tzinfo=None)


def save_changes(conflict_message=None):
    """Commit the session, rolling back and raising a domain error on failure."""
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if conflict_message:
            raise ConflictError(conflict_message) from e
        logger.exception("Integrity error while saving changes")
        raise InternalError("Failed to save changes") from e
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Database error while saving changes")
        raise InternalError("Failed to save changes") from e


class User(db.Model):
    __tablename__ = 'Users'
    user_id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(15), nullable=False)
    last_name = db.Column(db.String(15), nullable=False)
    username = db.Column(db.String(15), unique=True, nullable=False)
    email = db.Column(db.String(100), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=False)
    gender = db.Column(db.String(10), nullable=False)
    bio = db.Column(db.String(200))
    profile_picture = db.Column(db.String(500))
    is_private = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    posts = db.relationship('Post', backref='author', lazy='dynamic')

    @property
    def name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def follower_ids(self):
        rows = db.session.query(Follower.follower_user_id)\
            .filter(Follower.followed_user_id == self.user_id)
        return {follower_id for (follower_id,) in rows}

    @property
    def following_ids(self):
        rows = db.session.query(Follower.followed_user_id)\
            .filter(Follower.follower_user_id == self.user_id)
        return {followed_id for (followed_id,) in rows}

    @property
    def blocked_ids(self):
        rows = db.session.query(Block.blocked_user_id)\
            .filter(Block.blocker_user_id == self.user_id)
        return {blocked_id for (blocked_id,) in rows}


class Follower(db.Model):
    __tablename__ = 'Followers'
    __table_args__ = (
        db.UniqueConstraint('follower_user_id', 'followed_user_id', name='uq_follower_pair'),
    )
    follower_id = db.Column(db.Integer, primary_key=True)
    follower_user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False, index=True)
    followed_user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)


class Block(db.Model):
    __tablename__ = 'Blocks'
    __table_args__ = (
        db.UniqueConstraint('blocker_user_id', 'blocked_user_id', name='uq_block_pair'),
    )
    block_id = db.Column(db.Integer, primary_key=True)
    blocker_user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False, index=True)
    blocked_user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)


class FollowRequest(db.Model):
    __tablename__ = 'FollowRequests'
    __table_args__ = (
        db.UniqueConstraint('from_user_id', 'to_user_id', name='uq_follow_request_pair'),
    )
    request_id = db.Column(db.Integer, primary_key=True)
    from_user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False, index=True)
    to_user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False, index=True)
    status = db.Column(db.String(10), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    from_user = db.relationship('User', foreign_keys=[from_user_id])


class Post(db.Model):
    __tablename__ = 'Posts'
    post_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False, index=True)
    caption = db.Column(db.Text)
    location = db.Column(db.String(200))
    media = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    comments = db.relationship('Comment', backref='post', cascade='all, delete-orphan',
                               order_by='Comment.comment_id')
    likes = db.relationship('Like', backref='post', cascade='all, delete-orphan')


class Like(db.Model):
    __tablename__ = 'Likes'
    __table_args__ = (
        db.UniqueConstraint('post_id', 'user_id', name='uq_like_post_user'),
    )
    like_id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('Posts.post_id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)


class Comment(db.Model):
    __tablename__ = 'Comments'
    comment_id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('Posts.post_id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    author = db.relationship('User')
    likes = db.relationship('CommentLike', backref='comment', cascade='all, delete-orphan')
    replies = db.relationship('Reply', backref='comment', cascade='all, delete-orphan',
                              order_by='Reply.reply_id')


class CommentLike(db.Model):
    __tablename__ = 'CommentLikes'
    __table_args__ = (
        db.UniqueConstraint('comment_id', 'user_id', name='uq_like_comment_user'),
    )
    comment_like_id = db.Column(db.Integer, primary_key=True)
    comment_id = db.Column(db.Integer, db.ForeignKey('Comments.comment_id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)


class Reply(db.Model):
    __tablename__ = 'Replies'
    reply_id = db.Column(db.Integer, primary_key=True)
    comment_id = db.Column(db.Integer, db.ForeignKey('Comments.comment_id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    author = db.relationship('User')


class OTPRecord(db.Model):
    __tablename__ = 'OTPs'
    otp_id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(100), nullable=False, index=True)
    code = db.Column(db.String(6), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)


class VerifiedEmail(db.Model):
    __tablename__ = 'VerifiedEmails'
    verified_id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(100), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
