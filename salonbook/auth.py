"""
Bearer-token authentication for the owner dashboard.

Tokens are issued by the external identity provider; this module only
verifies them and keeps a local User row in sync with the claims.
"""

from functools import wraps

import jwt
from flask import current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models import User


def decode_token(token: str) -> dict:
    config = current_app.config
    options = {"require": ["sub"]}
    kwargs = {}
    if config.get("AUTH_JWT_AUDIENCE"):
        kwargs["audience"] = config["AUTH_JWT_AUDIENCE"]
    else:
        options["verify_aud"] = False
    if config.get("AUTH_JWT_ISSUER"):
        kwargs["issuer"] = config["AUTH_JWT_ISSUER"]

    return jwt.decode(
        token,
        config["AUTH_JWT_SECRET"],
        algorithms=[config.get("AUTH_JWT_ALGORITHM", "HS256")],
        options=options,
        **kwargs,
    )


def optional_user_id():
    """The caller's user id when a valid bearer token is present, else None."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    try:
        return str(decode_token(auth_header[7:])["sub"])
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f"Ignored invalid token: {e}")
        return None


def upsert_user(claims: dict) -> User:
    user = db.session.get(User, str(claims["sub"]))
    if user is None:
        user = User(id=str(claims["sub"]))
        db.session.add(user)

    for claim in ("email", "first_name", "last_name", "profile_image_url"):
        if claims.get(claim):
            setattr(user, claim, claims[claim])

    db.session.commit()
    return user


def login_required(view):
    """Reject the request with 401 unless it carries a valid bearer token."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        try:
            claims = decode_token(auth_header[7:])
        except jwt.InvalidTokenError as e:
            current_app.logger.warning(f"Rejected token: {e}")
            return jsonify({"error": "Invalid or expired token"}), 401

        try:
            g.user = upsert_user(claims)
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to sync user {claims['sub']}: {e}")
            return jsonify({"error": "Failed to load user"}), 500

        g.user_id = g.user.id
        return view(*args, **kwargs)

    return wrapper
