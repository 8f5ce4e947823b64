from flask import Blueprint, jsonify
from ledger.account import AccountLedger
from blueprints.request_helpers import get_json_body, resolve_user_id, require_fields


bp = Blueprint("withdraw", __name__, url_prefix="")


@bp.route("/withdraw", methods=["POST"])
def request_withdrawal():
    """
    Expected JSON:
    {
        "userId": 1,
        "type": "referral" | "earning",
        "amount": 5000,
        "bank": "", "accountNumber": "", "accountName": ""
    }
    The amount leaves the ledger now; an admin approves the payout later.
    """
    data = get_json_body()
    user_id = resolve_user_id(data)
    require_fields(data, "type", "amount", "bank", "accountNumber", "accountName")

    withdrawal = AccountLedger.request_withdrawal(
        user_id,
        data["type"],
        data["amount"],
        {
            "bank": data["bank"],
            "account_number": data["accountNumber"],
            "account_name": data["accountName"],
        },
    )

    return jsonify({
        "success": True,
        "message": "Withdrawal request submitted",
        "withdrawal": withdrawal.to_dict(),
    }), 201
