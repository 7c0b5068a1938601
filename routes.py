# Routes for handling requests
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user, jwt_required, set_access_cookies, unset_jwt_cookies

import auth
import content
import relationships
import verification
from errors import AuthError, NotFoundError, ValidationError
from extensions import limiter
from forms import validate_bio, validate_name
from models import Post, save_changes
from relationships import can_view, is_blocked_between

# Create blueprints for different route categories
auth_bp = Blueprint('auth', __name__)
otp_bp = Blueprint('otp', __name__)
posts_bp = Blueprint('posts', __name__)
comments_bp = Blueprint('comments', __name__)
follow_bp = Blueprint('follow_requests', __name__)
profile_bp = Blueprint('profile', __name__)


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


# Response shapes

def user_summary(user):
    return {
        "user_id": user.user_id,
        "username": user.username,
        "name": user.name,
        "profile_picture": user.profile_picture,
        "is_private": user.is_private,
    }


def user_private_data(user):
    return {
        "user_id": user.user_id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "username": user.username,
        "email": user.email,
        "gender": user.gender,
        "date_of_birth": user.date_of_birth.isoformat(),
        "bio": user.bio,
        "profile_picture": user.profile_picture,
        "is_private": user.is_private,
        "posts": [post.post_id for post in user.posts.order_by(Post.post_id)],
        "followers": sorted(user.follower_ids),
        "following": sorted(user.following_ids),
        "blocked": sorted(user.blocked_ids),
    }


def reply_data(reply):
    return {
        "reply_id": reply.reply_id,
        "text": reply.text,
        "created_at": reply.created_at.isoformat(),
        "author": user_summary(reply.author),
    }


def comment_data(comment, viewer_id=None):
    likes = [like.user_id for like in comment.likes]
    return {
        "comment_id": comment.comment_id,
        "post_id": comment.post_id,
        "text": comment.text,
        "created_at": comment.created_at.isoformat(),
        "author": user_summary(comment.author),
        "likes": likes,
        "likes_count": len(likes),
        "is_liked_by_me": viewer_id in likes,
        "replies": [reply_data(reply) for reply in comment.replies],
    }


def post_data(post, viewer_id=None, likes_count=None, comments_count=None, is_liked_by_me=None):
    likes = [like.user_id for like in post.likes]
    return {
        "post_id": post.post_id,
        "caption": post.caption,
        "location": post.location,
        "media": post.media,
        "created_at": post.created_at.isoformat(),
        "author": user_summary(post.author),
        "likes": likes,
        "likes_count": len(likes) if likes_count is None else likes_count,
        "comments_count": len(post.comments) if comments_count is None else comments_count,
        "is_liked_by_me": (viewer_id in likes) if is_liked_by_me is None else is_liked_by_me,
        "comments": [comment_data(comment, viewer_id) for comment in post.comments],
    }


def follow_request_data(follow_request):
    return {
        "request_id": follow_request.request_id,
        "from_user": user_summary(follow_request.from_user),
        "to_user_id": follow_request.to_user_id,
        "status": follow_request.status,
        "created_at": follow_request.created_at.isoformat(),
    }


# Authentication Endpoints
@auth_bp.route('/signup', methods=['POST'])
def signup():
    """User Registration Endpoint"""
    user = auth.signup(_json_body())
    return jsonify({"msg": "User registered successfully", "data": {"user_id": user.user_id}}), 201


@auth_bp.route('/signin', methods=['POST'])
def signin():
    """User Login Endpoint"""
    data = _json_body()
    user, token = auth.signin(data.get('username') or data.get('email'), data.get('password'))

    response = jsonify({"msg": "Signin successfully", "data": user_private_data(user)})
    set_access_cookies(response, token)
    return response, 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    response = jsonify({"msg": "User logged out successfully"})
    unset_jwt_cookies(response)
    return response, 200


@auth_bp.route('/change-password', methods=['PATCH'])
@jwt_required()
def change_password():
    data = _json_body()
    auth.change_password(current_user, data.get('old_password'), data.get('new_password'))
    return jsonify({"msg": "Password changed successfully"}), 200


@auth_bp.route('/get-user-data', methods=['GET'])
@jwt_required()
def get_user_data():
    return jsonify({"msg": "Fetched user data", "data": user_private_data(current_user)}), 200


# Email verification
@otp_bp.route('/send-otp', methods=['POST'])
@limiter.limit(lambda: current_app.config['OTP_RATE_LIMIT'])
def send_otp():
    verification.send_otp(_json_body().get('email'))
    return jsonify({"msg": "OTP sent successfully!"}), 200


@otp_bp.route('/verify-otp', methods=['POST'])
def verify_otp():
    data = _json_body()
    verification.verify_otp(data.get('email'), data.get('otp'))
    return jsonify({"msg": "Email verified successfully"}), 200


# Posts
@posts_bp.route('/create', methods=['POST'])
@jwt_required()
def create_post():
    post = content.create_post(current_user, _json_body())
    return jsonify({"msg": "Post created successfully", "data": post_data(post, current_user.user_id)}), 200


@posts_bp.route('', methods=['GET'])
@jwt_required()
def get_own_posts():
    """All posts of the logged-in user"""
    posts = content.list_own_posts(current_user)
    return jsonify({
        "msg": "Fetched all posts",
        "data": [post_data(post, current_user.user_id) for post in posts]
    }), 200


@posts_bp.route('/feed', methods=['GET'])
@jwt_required()
def get_feed():
    """Posts from the logged-in user and the accounts they follow"""
    rows = content.feed(current_user)
    return jsonify({
        "msg": "Fetched feed",
        "data": [
            post_data(post, current_user.user_id, likes_count, comments_count, is_liked_by_me)
            for post, likes_count, comments_count, is_liked_by_me in rows
        ]
    }), 200


@posts_bp.route('/<int:post_id>', methods=['GET'])
@jwt_required()
def get_post(post_id):
    post = content.view_post(current_user, post_id)
    return jsonify({"msg": "Fetched single post", "data": post_data(post, current_user.user_id)}), 200


@posts_bp.route('/<int:post_id>', methods=['PATCH'])
@jwt_required()
def update_post(post_id):
    post = content.update_post(current_user, post_id, _json_body())
    return jsonify({"msg": "Post updated successfully", "data": post_data(post, current_user.user_id)}), 200


@posts_bp.route('/<int:post_id>', methods=['DELETE'])
@jwt_required()
def delete_post(post_id):
    content.delete_post(current_user, post_id)
    return jsonify({"msg": "Post deleted successfully"}), 200


@posts_bp.route('/<int:post_id>/like', methods=['PATCH'])
@jwt_required()
def like_post(post_id):
    post = content.like_post(current_user, post_id)
    return jsonify({"msg": "Like Done", "data": post_data(post, current_user.user_id)}), 200


@posts_bp.route('/<int:post_id>/unlike', methods=['PATCH'])
@jwt_required()
def unlike_post(post_id):
    post = content.unlike_post(current_user, post_id)
    return jsonify({"msg": "Unlike Done", "data": post_data(post, current_user.user_id)}), 200


# Comments
@comments_bp.route('/<int:post_id>', methods=['POST'])
@jwt_required()
def add_comment(post_id):
    post = content.add_comment(current_user, post_id, _json_body())
    return jsonify({"msg": "Comment Done", "data": post_data(post, current_user.user_id)}), 200


@comments_bp.route('/<int:post_id>/<int:comment_id>/like', methods=['POST'])
@jwt_required()
def like_comment(post_id, comment_id):
    comment = content.like_comment(current_user, post_id, comment_id)
    return jsonify({"msg": "Comment liked", "data": comment_data(comment, current_user.user_id)}), 200


@comments_bp.route('/<int:post_id>/<int:comment_id>/unlike', methods=['PATCH'])
@jwt_required()
def unlike_comment(post_id, comment_id):
    comment = content.unlike_comment(current_user, post_id, comment_id)
    return jsonify({"msg": "Comment unliked", "data": comment_data(comment, current_user.user_id)}), 200


@comments_bp.route('/<int:post_id>/<int:comment_id>/reply', methods=['POST'])
@jwt_required()
def reply_to_comment(post_id, comment_id):
    comment = content.reply_to_comment(current_user, post_id, comment_id, _json_body())
    return jsonify({"msg": "Reply Done", "data": comment_data(comment, current_user.user_id)}), 200


@comments_bp.route('/<int:post_id>/<int:comment_id>', methods=['DELETE'])
@jwt_required()
def delete_comment(post_id, comment_id):
    post = content.delete_comment(current_user, post_id, comment_id)
    return jsonify({"msg": "Comment deleted", "data": post_data(post, current_user.user_id)}), 200


# Follow requests, unfollow and blocking
@follow_bp.route('/follow-requests', methods=['GET'])
@jwt_required()
def list_follow_requests():
    """Pending requests addressed to the logged-in user"""
    pending = relationships.pending_requests(current_user)
    return jsonify({
        "msg": "Fetched follow requests",
        "data": [follow_request_data(item) for item in pending]
    }), 200


@follow_bp.route('/follow-requests/search', methods=['GET'])
@jwt_required()
def search_users():
    users = relationships.search_accounts(current_user, request.args.get('q'))
    return jsonify({"msg": "Search results", "data": [user_summary(user) for user in users]}), 200


@follow_bp.route('/follow-requests/check/<int:to_user_id>', methods=['GET'])
@jwt_required()
def check_follow_request(to_user_id):
    status = relationships.request_status(current_user, to_user_id)
    return jsonify({"msg": "Follow status", "data": status}), 200


@follow_bp.route('/follow-requests/<int:to_user_id>', methods=['POST'])
@jwt_required()
def send_follow_request(to_user_id):
    target, follow_request = relationships.request_follow(current_user, to_user_id)
    if follow_request.status == relationships.PENDING:
        msg = f"Follow request sent to user: {target.username}"
    else:
        msg = f"Now following user: {target.username}"
    return jsonify({"msg": msg, "data": follow_request_data(follow_request)}), 200


@follow_bp.route('/follow-requests/<int:to_user_id>', methods=['DELETE'])
@jwt_required()
def cancel_follow_request(to_user_id):
    relationships.cancel_request(current_user, to_user_id)
    return jsonify({"msg": "Follow request withdrawn"}), 200


@follow_bp.route('/follow-requests/review/<int:request_id>/<status>', methods=['PATCH'])
@jwt_required()
def review_follow_request(request_id, status):
    follow_request = relationships.review_request(current_user, request_id, status)
    if follow_request is None:
        return jsonify({"msg": "Request Rejected & Deleted"}), 200
    return jsonify({"msg": "Follow Request Accepted", "data": follow_request_data(follow_request)}), 200


@follow_bp.route('/follow-requests/unfollow/<int:user_id>', methods=['PATCH'])
@jwt_required()
def unfollow(user_id):
    target = relationships.unfollow(current_user, user_id)
    return jsonify({"msg": f"Unfollowed user: {target.username}"}), 200


@follow_bp.route('/follow-request/block/<int:user_id>', methods=['PATCH'])
@follow_bp.route('/follow-requests/block/<int:user_id>', methods=['PATCH'])
@jwt_required()
def block_user(user_id):
    target = relationships.block(current_user, user_id)
    return jsonify({"msg": f"User {target.username} blocked successfully"}), 200


@follow_bp.route('/follow-request/unblock/<int:user_id>', methods=['PATCH'])
@follow_bp.route('/follow-requests/unblock/<int:user_id>', methods=['PATCH'])
@jwt_required()
def unblock_user(user_id):
    relationships.unblock(current_user, user_id)
    return jsonify({"msg": "User unblocked successfully"}), 200


# Profile
def _require_self(user_id):
    if user_id != current_user.user_id:
        raise AuthError("Invalid Operation / Access Denied")


@profile_bp.route('/<int:user_id>', methods=['PATCH'])
@jwt_required()
def update_profile(user_id):
    """Update name and bio of the logged-in user"""
    _require_self(user_id)
    data = _json_body()

    if 'first_name' in data:
        current_user.first_name = validate_name(data['first_name'], 'First name')
    if 'last_name' in data:
        current_user.last_name = validate_name(data['last_name'], 'Last name')
    if 'bio' in data:
        current_user.bio = validate_bio(data['bio'])
    save_changes()

    return jsonify({"msg": "Profile updated successfully", "data": user_private_data(current_user)}), 200


@profile_bp.route('/<int:user_id>/profile-picture', methods=['PATCH'])
@jwt_required()
def update_profile_picture(user_id):
    _require_self(user_id)
    profile_picture = _json_body().get('profile_picture')
    if not isinstance(profile_picture, str) or not profile_picture.strip():
        raise ValidationError("Profile picture is required")

    current_user.profile_picture = profile_picture.strip()
    save_changes()
    return jsonify({"msg": "Profile picture updated successfully", "data": user_private_data(current_user)}), 200


@profile_bp.route('/<int:user_id>/privacy', methods=['PATCH'])
@jwt_required()
def update_privacy(user_id):
    _require_self(user_id)
    is_private = _json_body().get('is_private')
    if not isinstance(is_private, bool):
        raise ValidationError("is_private must be true or false")

    current_user.is_private = is_private
    save_changes()
    return jsonify({"msg": "Privacy setting updated successfully", "data": user_private_data(current_user)}), 200


@profile_bp.route('/<int:user_id>', methods=['GET'])
@jwt_required()
def get_profile(user_id):
    user = relationships.get_user_or_404(user_id)
    if is_blocked_between(current_user, user):
        raise NotFoundError("User does not exist")

    followers = user.follower_ids
    following = user.following_ids
    profile = {
        **user_summary(user),
        "bio": user.bio,
        "posts_count": user.posts.count(),
        "followers_count": len(followers),
        "following_count": len(following),
        "is_following": current_user.user_id in followers,
        "can_view": can_view(current_user, user),
    }
    if profile["can_view"]:
        posts = user.posts.order_by(Post.created_at.desc(), Post.post_id.desc()).all()
        profile["posts"] = [post_data(post, current_user.user_id) for post in posts]

    return jsonify({"msg": "Fetched profile", "data": profile}), 200
