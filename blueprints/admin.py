#======================================================================================
#
# ADMIN API: listings and withdrawal decisions
#
#=======================================================================================
import hmac
from functools import wraps
from flask import jsonify, request, Blueprint, session, current_app
from flask_login import current_user
from ledger.errors import Forbidden
from ledger.promo import PromoCounter
from ledger.stores import UserStore, DepositStore
from ledger.withdrawals import WithdrawalQueue
import logging

logger = logging.getLogger(__name__)


def _token_matches(token):
    expected = current_app.config.get("ADMIN_API_TOKEN")
    if not expected or not token:
        return False
    return hmac.compare_digest(str(token), str(expected))


def admin_required(f):
    """
    Decorator to restrict access to admin-only routes.
    - Accepts a logged-in user whose role is 'admin'.
    - Or an X-Admin-Token header equal to ADMIN_API_TOKEN.
    - Anything else is 403 Forbidden.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if _token_matches(request.headers.get("X-Admin-Token")):
            return f(*args, **kwargs)

        user = None
        if current_user.is_authenticated:
            user = current_user
        elif "user_id" in session:
            user = UserStore.get(session["user_id"])

        if not user or not user.is_admin:
            logger.warning(f"Admin access denied for {request.remote_addr} on {request.path}")
            raise Forbidden("Admin access required")

        return f(*args, **kwargs)

    return decorated_function


admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


@admin_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    users = UserStore.list_all()
    return jsonify({"success": True, "count": len(users), "users": [u.to_admin_dict() for u in users]}), 200


@admin_bp.route("/deposits", methods=["GET"])
@admin_required
def list_deposits():
    deposits = DepositStore.list_recent(200)
    return jsonify({
        "success": True,
        "deposits": [d.to_dict() for d in deposits],
        "promo": PromoCounter.status(),
    }), 200


@admin_bp.route("/withdrawals", methods=["GET"])
@admin_required
def list_withdrawals():
    withdrawals = WithdrawalQueue.list_requests(request.args.get("status"))
    return jsonify({"success": True, "withdrawals": [w.to_dict() for w in withdrawals]}), 200


#-----------------------------------------------------------------------------------------------------
@admin_bp.route("/withdrawals/<int:withdrawal_id>/approve", methods=["POST"])
@admin_required
def approve_withdrawal(withdrawal_id):
    """Records the decision only; the payout itself happens outside the system."""
    withdrawal = WithdrawalQueue.approve(withdrawal_id)
    return jsonify({"success": True, "withdrawal": withdrawal.to_dict()}), 200


@admin_bp.route("/withdrawals/<int:withdrawal_id>/reject", methods=["POST"])
@admin_required
def reject_withdrawal(withdrawal_id):
    withdrawal = WithdrawalQueue.reject(withdrawal_id)
    return jsonify({"success": True, "withdrawal": withdrawal.to_dict()}), 200
