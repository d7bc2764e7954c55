"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- GET  /auth/me

The implementation:
- Uses argon2 for password hashing (via auth.passwords)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs signed with HS256)
- Stores only hashes of refresh tokens, so they can be rotated (single use) and revoked
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, abort

from auth.decorators import current_sessions, jwt_required
from auth.errors import AuthError
from auth.service import TokenPair
from models.schemas.user import CredentialsSchema, LogoutSchema, RefreshSchema, UserOutSchema

bp = Blueprint("auth", __name__, url_prefix="/auth")

credentials_schema = CredentialsSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
user_out_schema = UserOutSchema()


def _token_payload(pair: TokenPair) -> dict:
    return {
        "access_token": pair.access_token,
        "refresh_token": pair.refresh_token,
        "token_type": "bearer",
        "expires_in": pair.expires_in,
    }


@bp.post("/register")
def register():
    """
    Register a new user and start a session.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [username, password]
          properties:
            username: { type: string, minLength: 3, maxLength: 30 }
            password: { type: string, minLength: 6, maxLength: 128 }
    responses:
      201:
        description: Created (returns tokens)
      409:
        description: Username already exists
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = credentials_schema.load(payload)

    pair = current_sessions().register(data["username"], data["password"])

    return jsonify(
        {
            "message": "User registered successfully",
            "user": {"username": data["username"]},
            **_token_payload(pair),
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login: return access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [username, password]
           properties:
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
    """
    payload = request.get_json(silent=True) or {}
    data = credentials_schema.load(payload)

    pair = current_sessions().login(data["username"], data["password"])

    return jsonify(
        {
            "message": "Login successful",
            "user": {"username": data["username"]},
            **_token_payload(pair),
        }
    ), 200


@bp.post("/refresh")
def refresh():
    """
    Use a refresh token to obtain new access and refresh tokens (rotation).
    The presented refresh token is revoked.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (returns a new token pair)
      401:
        description: Refresh token missing
      403:
        description: Invalid refresh token
    """
    payload = request.get_json(silent=True) or {}
    # non-object bodies fall through to the schema, which rejects them
    if isinstance(payload, dict) and not payload.get("refresh_token"):
        abort(401, description="Refresh token required")
    data = refresh_schema.load(payload)

    try:
        pair = current_sessions().refresh(data["refresh_token"])
    except AuthError:
        abort(403, description="Invalid refresh token")

    return jsonify(_token_payload(pair)), 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: revokes the given refresh token, or every refresh token of the user
    when none (or an empty one) is given.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         required: false
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: Logged out
      401:
        description: Unauthorized
    """
    payload = request.get_json(silent=True) or {}
    data = logout_schema.load(payload)

    revoked = current_sessions().logout(g.current_username, data.get("refresh_token"))

    return jsonify({"message": "Logout successful", "revoked": revoked}), 200


@bp.get("/me")
@jwt_required()
def me():
    """
    Current user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    user = current_sessions().store.get_user(g.current_username)
    if user is None:
        abort(401, description="Invalid token - user not found")
    return jsonify({"user": user_out_schema.dump(user)}), 200
