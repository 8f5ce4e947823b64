from flask import Blueprint, jsonify, current_app
from ledger.promo import PromoCounter
from ledger.referrals import list_referrals


bp = Blueprint('profile', __name__, url_prefix="")


@bp.route("/", methods=["GET"])
def home():
    return f"{current_app.config.get('SITE_NAME', 'HIGHTECH')} backend running", 200


@bp.route("/healthz", methods=["GET"])
def healthz():
    return {"status": "ok"}, 200


@bp.route("/siteinfo", methods=["GET"])
def siteinfo():
    site_name = current_app.config.get("SITE_NAME", "HIGHTECH")
    return jsonify({
        "siteName": site_name,
        "logoText": site_name,
        "welcome": f"Welcome to {site_name}, watch ads, earn daily!",
        "promo": PromoCounter.status(),
    }), 200


# ----------------------------------------------------------------------------------
# Users this user referred at signup
# ----------------------------------------------------------------------------------
@bp.route("/user/<int:user_id>/referrals", methods=["GET"])
def user_referrals(user_id):
    referrals = list_referrals(user_id)
    return jsonify({"success": True, "count": len(referrals), "referrals": referrals}), 200
