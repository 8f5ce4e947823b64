#======================================================================================================
#
#   PAYMENT API BLUEPRINT FOR FLUTTERWAVE DEPOSITS
#
#===========================================================================================================
from urllib.parse import urlencode
from flask import Blueprint, request, jsonify, current_app, redirect
from ledger.deposits import DepositService
from ledger.errors import LedgerError
from blueprints.request_helpers import get_json_body, resolve_user_id, require_fields
import logging


bp = Blueprint("payments", __name__)
logger = logging.getLogger(__name__)


def dashboard_redirect(outcome: str):
    frontend = current_app.config["FRONTEND_URL"].rstrip("/")
    return redirect(f"{frontend}/dashboard?{urlencode({'payment': outcome})}", code=302)


def callback_params() -> dict:
    """Query string for the GET redirect, JSON or form fields for POST."""
    params = request.args.to_dict()
    if request.method == "POST":
        body = request.get_json(silent=True)
        if isinstance(body, dict):
            params.update(body)
        elif request.form:
            params.update(request.form.to_dict())
    return params


#=============================================================================================
#      DEPOSIT INITIATION ENDPOINT
#============================================================================================
@bp.route("/deposit", methods=["POST"])
def deposit():
    data = get_json_body()
    user_id = resolve_user_id(data)
    require_fields(data, "amount")

    result = DepositService.initiate(user_id, data["amount"])

    return jsonify({
        "success": True,
        "paymentLink": result.payment_link,
        "link": result.payment_link,
        "txRef": result.deposit.tx_ref,
    }), 200


#=============================================================================================
#      GATEWAY REDIRECT CALLBACK
#============================================================================================
@bp.route("/payment/callback", methods=["GET", "POST"])
def payment_callback():
    """
    Flutterwave sends the browser back here with transaction_id, tx_ref and
    status. The answer is always a redirect to the dashboard carrying
    payment=success|failed|cancelled|error.
    """
    params = callback_params()
    transaction_id = params.get("transaction_id") or params.get("transactionId")
    tx_ref = params.get("tx_ref") or params.get("txRef")
    status = str(params.get("status") or "").lower()

    if status == "cancelled":
        logger.info(f"Payment cancelled by user (tx_ref={tx_ref})")
        return dashboard_redirect("cancelled")

    if not transaction_id or status != "successful":
        logger.info(f"Payment callback without success (tx_ref={tx_ref}, status={status})")
        return dashboard_redirect("failed")

    try:
        result = DepositService.reconcile(tx_ref, transaction_id)
    except LedgerError as e:
        logger.warning(f"Payment callback rejected for tx_ref={tx_ref}: {e.code} {e.message}")
        return dashboard_redirect("failed")
    except Exception as e:
        logger.error(f"Payment callback error for tx_ref={tx_ref}: {e}", exc_info=True)
        return dashboard_redirect("error")

    if result.credited:
        logger.info(f"Deposit {result.deposit.tx_ref} confirmed via callback")
    return dashboard_redirect("success")
