from flask import Blueprint, jsonify
from ledger.account import AccountLedger
from ledger.catalog import catalog_as_list
from blueprints.request_helpers import get_json_body, resolve_user_id, require_fields


bp = Blueprint("packages", __name__, url_prefix="")


@bp.route("/packages", methods=["GET"])
def list_packages():
    return jsonify({"success": True, "packages": catalog_as_list()}), 200


#==========================================================================
#      SUBSCRIBE TO A PACKAGE
#==========================================================================
@bp.route("/subscribe", methods=["POST"])
def subscribe():
    data = get_json_body()
    user_id = resolve_user_id(data)
    require_fields(data, "packageId")

    result = AccountLedger.subscribe(user_id, data["packageId"])

    return jsonify({
        "success": True,
        "message": "Subscribed",
        "user": {
            "balance": result.user.balance,
            "packageId": result.user.package_id,
        },
    }), 200
