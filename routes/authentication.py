import logging

from flask import Blueprint, request, jsonify, make_response, current_app
from sqlalchemy.exc import IntegrityError
from models.users import User, ROLES
from models import db
from utils.tokens import get_jwt_token, decode_jwt

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth_bp', __name__)


def _set_access_cookie(response, token, max_age):
    response.set_cookie(
        "access_token", token,
        httponly=True,
        secure=current_app.config.get("ACCESS_COOKIE_SECURE", True),
        samesite=current_app.config.get("ACCESS_COOKIE_SAMESITE", "None"),
        path="/",
        max_age=max_age
    )
    return response

# Login
@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    username = data.get("username_or_email")
    password = data.get("password")

    if not username or not password:
        return jsonify({"error": "Username and password are required"}), 400

    user = User.query.filter((User.username == username) | (User.email == username)).first()

    if not user or not user.check_password(password):
        logger.warning("Failed login for %s", username)
        return jsonify({"error": "Invalid credentials"}), 401

    token = get_jwt_token({
        "user_id": user.id,
        "username_or_email": user.username,
        "role": user.role,
    })

    response = make_response(jsonify({
        "message": "Login successful",
        "user": {
            "id": user.id,
            "role": user.role,
            "username": user.username,
            "email": user.email
        }
    }))

    max_age = int(current_app.config["JWT_EXPIRATION"].total_seconds())
    return _set_access_cookie(response, token, max_age)

# Logout
@auth_bp.route('/logout', methods=['POST'])
def logout():
    response = make_response(jsonify({"message": "Logout successful"}))
    return _set_access_cookie(response, "", 0)


def find_existing_user(username, email):
    return User.query.filter(
        (User.username == username) | (User.email == email)
    ).first()


# Register
@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}

    username = data.get('username')
    email = data.get('email')
    password = data.get('password')
    full_name = data.get('full_name')

    if not username or not email or not password or not full_name:
        return jsonify({"error": "All fields are required"}), 400

    if find_existing_user(username, email):
        return jsonify({"error": "User already exists"}), 409

    # Self registration always creates students
    new_user = User(
        username=username,
        email=email,
        full_name=full_name,
        role=ROLES[0]
    )
    new_user.set_password(password)

    db.session.add(new_user)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration
        db.session.rollback()
        return jsonify({"error": "User already exists"}), 409

    logger.info("Registered user %s", username)
    return jsonify({"message": "User registered successfully!", "user": new_user.to_dict()}), 201

# Auth Check
@auth_bp.route('/check-auth', methods=['GET'])
def check_auth():
    token = request.cookies.get("access_token")

    if not token:
        return jsonify({"error": "Not authenticated"}), 401

    decoded_token = decode_jwt(token)
    if not decoded_token:
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({
        "message": "Authenticated",
        "user": {
            "id": decoded_token.get("user_id"),
            "role": decoded_token.get("role"),
            "username_or_email": decoded_token.get("username_or_email"),
        }
    }), 200
