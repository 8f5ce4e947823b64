import random
from flask import Blueprint, jsonify
from ledger.ad_tracker import record_ad_watch, DAILY_AD_CAP, LIMIT_REACHED, ALREADY_REWARDED
from blueprints.request_helpers import get_json_body, resolve_user_id


bp = Blueprint("ads", __name__, url_prefix="")

VIDEO_IDS = (
    "dQw4w9WgXcQ",
    "3JZ_D3ELwOQ",
    "M7lc1UVf-VE",
    "hY7m5jjJ9mM",
    "eVTXPUF4Oz4",
)


@bp.route("/ads/watch", methods=["POST"])
def watch_ad():
    data = get_json_body()
    user_id = resolve_user_id(data)

    result = record_ad_watch(user_id)

    body = {
        "success": result.status not in (LIMIT_REACHED, ALREADY_REWARDED),
        "watched": result.watched,
        "limit": DAILY_AD_CAP,
        "rewarded": result.rewarded,
        "newBalance": result.new_balance,
        "status": result.status,
    }
    if result.status in (LIMIT_REACHED, ALREADY_REWARDED):
        body.update({"error": "daily_limit_reached", "message": "Daily ad limit reached"})
        return jsonify(body), 400
    if result.reward:
        body["message"] = f"Daily reward of ₦{result.reward:,} credited"
    return jsonify(body), 200


@bp.route("/videos/random", methods=["GET"])
def random_video():
    return jsonify({"videoId": random.choice(VIDEO_IDS)}), 200
