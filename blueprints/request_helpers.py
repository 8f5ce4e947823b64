from flask import request, session
from flask_login import current_user
from ledger.errors import ValidationError


def get_json_body() -> dict:
    """JSON object body, falling back to form fields. Never None."""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict() if request.form else {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid or missing JSON body")
    return data


def resolve_user_id(data: dict):
    """
    userId from the body, else the logged-in user. Raises ValidationError
    when neither is present.
    """
    user_id = data.get("userId")
    if user_id in (None, ""):
        if current_user.is_authenticated:
            return current_user.id
        user_id = session.get("user_id")
    if user_id in (None, ""):
        raise ValidationError("Missing fields", fields=["userId"])
    try:
        return int(user_id)
    except (TypeError, ValueError):
        raise ValidationError("userId must be an integer")


def require_fields(data: dict, *names):
    missing = [name for name in names if data.get(name) in (None, "")]
    if missing:
        raise ValidationError("Missing fields", fields=missing)
