import logging
from datetime import datetime, timedelta, timezone
from functools import wraps
from urllib.parse import urlencode

import jwt
import requests
from flask import Blueprint, current_app, jsonify, redirect, request

from . import db
from .errors import BadRequest, Unauthenticated, UpstreamFailure
from .models import User, commit_or_raise

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"


def generate_token(user_id, email):
    now = datetime.now(timezone.utc)
    payload = {
        "user_id": user_id,
        "email": email,
        "exp": now + timedelta(hours=current_app.config["JWT_EXPIRES_HOURS"]),
        "iat": now
    }
    return jwt.encode(payload, current_app.config["JWT_SECRET_KEY"], algorithm="HS256")


def resolve_identity():
    """Return the User behind the request's bearer token, or None."""
    token = request.headers.get("Authorization")
    if not token:
        return None
    if token.startswith("Bearer "):
        token = token[7:]
    try:
        payload = jwt.decode(token, current_app.config["JWT_SECRET_KEY"], algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        logger.debug("Token expired")
        return None
    except jwt.InvalidTokenError:
        logger.debug("Invalid token")
        return None
    user_id = payload.get("user_id")
    if user_id is None:
        return None
    user = db.session.get(User, user_id)
    if not user:
        logger.debug("User not found for token")
    return user


def token_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user = resolve_identity()
        if user is None:
            raise Unauthenticated()
        return f(user, *args, **kwargs)
    return decorated


def public_user(user):
    if user is None:
        return None
    return {"id": user.id, "displayName": user.display_name, "avatar": user.avatar}


def serialize_user(user):
    return {
        "id": user.id,
        "googleId": user.google_id,
        "displayName": user.display_name,
        "email": user.email,
        "avatar": user.avatar,
        "joinedHabits": [habit.id for habit in user.joined_habits]
    }


def upsert_google_user(profile):
    """Find the user for a Google profile, creating it on first login."""
    google_id = profile.get("sub")
    if not google_id:
        raise BadRequest("Google profile has no subject id")
    user = User.query.filter_by(google_id=google_id).first()
    if user:
        return user
    user = User(
        google_id=google_id,
        display_name=profile.get("name"),
        email=profile.get("email"),
        avatar=profile.get("picture")
    )
    db.session.add(user)
    commit_or_raise("create user")
    logger.info(f"User {user.id} created from Google login")
    return user


def fetch_google_profile(code):
    config = current_app.config
    try:
        token_res = requests.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": config["GOOGLE_CLIENT_ID"],
                "client_secret": config["GOOGLE_CLIENT_SECRET"],
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": config["GOOGLE_CALLBACK_URL"],
            },
            headers={"Accept": "application/json"},
            timeout=10,
        )
        token_res.raise_for_status()
        access_token = token_res.json().get("access_token")
        profile_res = requests.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=10,
        )
        profile_res.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Google login failed: {str(e)}")
        raise UpstreamFailure("Google login failed", str(e)) from e
    return profile_res.json()


@auth_bp.route("/auth/google", methods=["GET"])
def google_login():
    config = current_app.config
    if not (config["GOOGLE_CLIENT_ID"] and config["GOOGLE_CLIENT_SECRET"]):
        raise UpstreamFailure("Google OAuth not configured")
    params = {
        "client_id": config["GOOGLE_CLIENT_ID"],
        "redirect_uri": config["GOOGLE_CALLBACK_URL"],
        "response_type": "code",
        "scope": "openid email profile",
    }
    return redirect(f"{GOOGLE_AUTH_URL}?{urlencode(params)}")


@auth_bp.route("/auth/google/callback", methods=["GET"])
def google_callback():
    code = request.args.get("code")
    if not code:
        raise Unauthenticated("Google login was cancelled or failed")
    user = upsert_google_user(fetch_google_profile(code))
    token = generate_token(user.id, user.email)
    return jsonify({"token": token, "user": serialize_user(user)}), 200


@auth_bp.route("/auth/logout", methods=["GET"])
def logout():
    # Tokens are stateless; the client discards its copy.
    return jsonify({"ok": True}), 200


@auth_bp.route("/api/me", methods=["GET"])
def me():
    user = resolve_identity()
    return jsonify({"user": serialize_user(user) if user else None}), 200
