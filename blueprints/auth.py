import re
from flask import Blueprint, jsonify, session
from flask_login import login_user, logout_user
from sqlalchemy.exc import IntegrityError
from extensions import db
from ledger.errors import ValidationError, Unauthorized, Forbidden
from ledger.referrals import generate_referral_code, register_referral
from ledger.stores import UserStore
from blueprints.request_helpers import get_json_body, require_fields
from models import User
import logging


logger = logging.getLogger(__name__)
#==================================================================================================================

bp = Blueprint("auth", __name__, url_prefix="/auth")

MIN_PASSWORD_LENGTH = 6


def validate_email(email):
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


#===========================================================================
#      SIGN UP ROUTE.
#==============================================================================
@bp.route("/signup", methods=["POST"])
def signup():
    """
    Create a user and, when a known referralCode is supplied, link them to
    their referrer. The link is made once, here.
    """
    data = get_json_body()
    require_fields(data, "name", "email", "password")

    name = str(data["name"]).strip()
    email = str(data["email"]).strip().lower()
    password = str(data["password"])
    referral_code = data.get("referralCode")

    if not name:
        raise ValidationError("Missing fields", fields=["name"])
    if not validate_email(email):
        raise ValidationError("Invalid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if UserStore.get_by_email(email):
        raise ValidationError("Email already registered")

    new_user = User(
        name=name,
        email=email,
        referral_code=generate_referral_code(email),
        verified=True,
        balance=0,
        referral_earnings=0,
    )
    new_user.set_password(password)
    referrer = register_referral(new_user, referral_code)

    try:
        UserStore.add(new_user)
        db.session.commit()
    except IntegrityError:
        # Lost a race on email or referral code.
        db.session.rollback()
        logger.warning(f"Signup conflict for {email}")
        raise ValidationError("Email already registered")

    logger.info(f"New signup {email} (user {new_user.id}"
                f"{f', referred by {referrer.id}' if referrer else ''})")
    return jsonify({
        "success": True,
        "message": "Signup successful",
        "userId": new_user.id,
        "referralCode": new_user.referral_code,
    }), 201


# --------------------------------------------------
#      Login Route
# --------------------------------------------------
@bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate a user.
    Expected JSON:
    {
        "email": "",
        "password": ""
    }
    """
    data = get_json_body()
    require_fields(data, "email", "password")

    user = UserStore.get_by_email(str(data["email"]))
    if not user or not user.check_password(str(data["password"])):
        raise Unauthorized()
    if not user.verified:
        raise Forbidden("Please verify email")

    login_user(user)
    session["user_id"] = user.id

    return jsonify({"success": True, "user": user.to_dict()}), 200


#-----------------------------------------------------------------------------------------------------
@bp.route("/logout", methods=["POST"])
def logout():
    """
    Destroy User session
    """
    logout_user()
    session.clear()
    return jsonify({"success": True, "message": "Logged out successfully"}), 200
