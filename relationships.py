"""Follow requests, follower edges, blocks, and the visibility rule built on them.

This module is the only writer of the ``Followers``, ``Blocks`` and
``FollowRequests`` tables. A follower edge is a single row, so
``A in B.followers`` and ``B in A.following`` always change together, and
every operation commits its edge changes in one transaction.

Request lifecycle: a request to a private account starts as pending and is
either accepted or rejected (deleted) by the target. A request to a public
account is accepted immediately. Unfollow and block delete accepted requests.
"""
import logging

from flask import current_app

from errors import AuthError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from models import Block, Follower, FollowRequest, User, db, save_changes

logger = logging.getLogger(__name__)

PENDING = 'pending'
ACCEPTED = 'accepted'
REJECTED = 'rejected'


def is_blocked_between(first, second):
    return first.user_id in second.blocked_ids or second.user_id in first.blocked_ids


def can_view(viewer, owner):
    """Whether ``viewer`` may see ``owner``'s profile and content.

    Accounts only need ``user_id``, ``is_private``, ``follower_ids`` and
    ``blocked_ids``.
    """
    if viewer.user_id == owner.user_id:
        return True
    if is_blocked_between(viewer, owner):
        return False
    if not owner.is_private:
        return True
    return viewer.user_id in owner.follower_ids


def can_interact(viewer, owner):
    """Whether ``viewer`` may like, comment on or reply to ``owner``'s content."""
    return can_view(viewer, owner)


def get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User does not exist")
    return user


def _add_follow_edge(follower_id, followed_id):
    db.session.add(Follower(follower_user_id=follower_id, followed_user_id=followed_id))


def _remove_follow_edges(first_id, second_id):
    Follower.query.filter(
        ((Follower.follower_user_id == first_id) & (Follower.followed_user_id == second_id))
        | ((Follower.follower_user_id == second_id) & (Follower.followed_user_id == first_id))
    ).delete(synchronize_session=False)


def request_follow(actor, to_user_id):
    """Send a follow request; public accounts accept it immediately."""
    if to_user_id == actor.user_id:
        raise ValidationError("You cannot follow yourself")

    target = get_user_or_404(to_user_id)

    if actor.user_id in target.blocked_ids:
        raise AuthorizationError("You are blocked")
    if target.user_id in actor.blocked_ids:
        raise AuthorizationError("Unblock this user before following")

    existing = FollowRequest.query.filter_by(
        from_user_id=actor.user_id, to_user_id=target.user_id
    ).first()
    if existing:
        if existing.status == PENDING:
            raise ConflictError("Follow request already pending")
        raise ConflictError("You are already following this user")

    status = PENDING if target.is_private else ACCEPTED
    follow_request = FollowRequest(
        from_user_id=actor.user_id, to_user_id=target.user_id, status=status
    )
    db.session.add(follow_request)
    if status == ACCEPTED:
        _add_follow_edge(actor.user_id, target.user_id)

    save_changes(conflict_message="Follow request already exists")
    logger.info("User %s -> %s follow request %s", actor.user_id, target.user_id, status)
    return target, follow_request


def review_request(actor, request_id, decision):
    """Accept or reject a pending request addressed to ``actor``.

    Rejected requests are deleted and ``None`` is returned.
    """
    if decision not in (ACCEPTED, REJECTED):
        raise ValidationError("Invalid Status - Allowed values: accepted/rejected")

    follow_request = db.session.get(FollowRequest, request_id)
    if not follow_request:
        raise NotFoundError("Request does not exist")
    if follow_request.to_user_id != actor.user_id:
        raise AuthError("Invalid Operation - not your request to review")
    if follow_request.status != PENDING:
        raise ConflictError("Invalid Operation - Request already handled")

    if decision == REJECTED:
        db.session.delete(follow_request)
        save_changes()
        logger.info("User %s rejected request %s", actor.user_id, request_id)
        return None

    follow_request.status = ACCEPTED
    _add_follow_edge(follow_request.from_user_id, actor.user_id)
    save_changes(conflict_message="Already following")
    logger.info("User %s accepted request %s", actor.user_id, request_id)
    return follow_request


def unfollow(actor, target_id):
    target = get_user_or_404(target_id)

    edge = Follower.query.filter_by(
        follower_user_id=actor.user_id, followed_user_id=target.user_id
    ).first()
    if not edge:
        raise ConflictError("You are not following this user")

    db.session.delete(edge)
    FollowRequest.query.filter_by(
        from_user_id=actor.user_id, to_user_id=target.user_id
    ).delete(synchronize_session=False)
    save_changes()
    logger.info("User %s unfollowed %s", actor.user_id, target.user_id)
    return target


def block(actor, target_id):
    """Block ``target_id``, dropping follows and requests in both directions."""
    if target_id == actor.user_id:
        raise ValidationError("You cannot block yourself")

    target = get_user_or_404(target_id)
    if target.user_id in actor.blocked_ids:
        raise ConflictError("User already blocked")

    _remove_follow_edges(actor.user_id, target.user_id)
    FollowRequest.query.filter(
        ((FollowRequest.from_user_id == actor.user_id) & (FollowRequest.to_user_id == target.user_id))
        | ((FollowRequest.from_user_id == target.user_id) & (FollowRequest.to_user_id == actor.user_id))
    ).delete(synchronize_session=False)
    db.session.add(Block(blocker_user_id=actor.user_id, blocked_user_id=target.user_id))

    save_changes(conflict_message="User already blocked")
    logger.info("User %s blocked %s", actor.user_id, target.user_id)
    return target


def unblock(actor, target_id):
    """Lift a block. Follow relationships removed by the block stay removed."""
    entry = Block.query.filter_by(
        blocker_user_id=actor.user_id, blocked_user_id=target_id
    ).first()
    if not entry:
        raise ConflictError("User is not blocked")

    db.session.delete(entry)
    save_changes()
    logger.info("User %s unblocked %s", actor.user_id, target_id)


def cancel_request(actor, to_user_id):
    follow_request = FollowRequest.query.filter_by(
        from_user_id=actor.user_id, to_user_id=to_user_id, status=PENDING
    ).first()
    if not follow_request:
        raise NotFoundError("No pending follow request for this user")

    db.session.delete(follow_request)
    save_changes()


def pending_requests(actor):
    return FollowRequest.query.filter_by(to_user_id=actor.user_id, status=PENDING)\
        .order_by(FollowRequest.created_at.desc(), FollowRequest.request_id.desc())\
        .all()


def request_status(actor, to_user_id):
    get_user_or_404(to_user_id)
    follow_request = FollowRequest.query.filter_by(
        from_user_id=actor.user_id, to_user_id=to_user_id
    ).first()
    is_following = Follower.query.filter_by(
        follower_user_id=actor.user_id, followed_user_id=to_user_id
    ).first() is not None
    return {
        "request_id": follow_request.request_id if follow_request else None,
        "status": follow_request.status if follow_request else None,
        "is_following": is_following,
    }


def search_accounts(actor, query):
    query = (query or '').strip()
    if not query:
        raise ValidationError("Search query is required")

    hidden = actor.blocked_ids | {
        blocker_id for (blocker_id,) in db.session.query(Block.blocker_user_id)
        .filter(Block.blocked_user_id == actor.user_id)
    }
    hidden.add(actor.user_id)

    pattern = f'%{query}%'
    return User.query.filter(
        User.username.ilike(pattern)
        | User.first_name.ilike(pattern)
        | User.last_name.ilike(pattern)
    ).filter(User.user_id.not_in(hidden))\
        .order_by(User.username.asc())\
        .limit(current_app.config['SEARCH_LIMIT'])\
        .all()
