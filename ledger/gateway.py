# ==========================================================
#                  FLUTTERWAVE GATEWAY CLIENT
# ==========================================================
"""
Thin client for the two Flutterwave calls the ledger makes: creating a
hosted payment link and verifying a transaction.

Responses are untrusted. verify_transaction() parses only the fields the
ledger consumes into a GatewayTransaction; everything else stays in
``raw`` for the audit trail and is never read by the ledger.
"""
import json
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from flask import current_app
from ledger.errors import UpstreamFailure, ValidationError
from logger import payments_logger as logger

TRANSACTION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


@dataclass(frozen=True)
class GatewayTransaction:
    transaction_id: str
    tx_ref: Optional[str]
    status: str
    amount: Optional[Decimal]
    currency: Optional[str]
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_successful(self) -> bool:
        return self.status == "successful"

    def to_json(self) -> str:
        return json.dumps(self.raw, default=str, sort_keys=True)

    @classmethod
    def from_verify_payload(cls, transaction_id, payload):
        data = (payload or {}).get("data") or {}
        if not isinstance(data, dict):
            data = {}
        try:
            amount = Decimal(str(data["amount"])) if data.get("amount") is not None else None
        except (InvalidOperation, ValueError):
            amount = None
        return cls(
            transaction_id=str(data.get("id") or transaction_id),
            tx_ref=data.get("tx_ref"),
            status=str(data.get("status") or "").lower(),
            amount=amount,
            currency=data.get("currency"),
            raw=data,
        )


def build_session(retries: int = 3) -> requests.Session:
    """Session that retries idempotent reads on throttling and 5xx responses."""
    session = requests.Session()
    retry_strategy = Retry(
        total=retries,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=frozenset(["GET"]),
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class FlutterwaveClient:

    def __init__(self, secret_key, base_url="https://api.flutterwave.com/v3",
                 timeout=30, title="HIGHTECH Deposit", session=None):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.title = title
        self.session = session or build_session()

    @classmethod
    def from_config(cls, config):
        return cls(
            secret_key=config.get("FLW_SECRET_KEY"),
            base_url=config.get("FLW_BASE_URL", "https://api.flutterwave.com/v3"),
            timeout=config.get("REQUEST_TIMEOUT_SECONDS", 30),
            title=config.get("PAYMENT_TITLE", "HIGHTECH Deposit"),
        )

    def _headers(self):
        if not self.secret_key:
            logger.error("FLW_SECRET_KEY not set")
            raise UpstreamFailure()
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, headers=self._headers(),
                                            timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            logger.error(f"Flutterwave {method} {path} timed out after {self.timeout}s")
            raise UpstreamFailure()
        except requests.exceptions.RequestException as e:
            logger.error(f"Flutterwave {method} {path} failed: {e}")
            raise UpstreamFailure()

        try:
            payload = response.json()
        except ValueError:
            logger.error(f"Flutterwave {method} {path} returned non-JSON ({response.status_code}): "
                         f"{response.text[:500]}")
            raise UpstreamFailure()

        if response.status_code >= 400:
            logger.warning(f"Flutterwave {method} {path} -> {response.status_code}: {payload}")
        return response.status_code, payload

    def create_payment_link(self, tx_ref, amount, currency, customer, redirect_url) -> str:
        body = {
            "tx_ref": tx_ref,
            "amount": amount,
            "currency": currency,
            "redirect_url": redirect_url,
            "customer": customer,
            "customizations": {"title": self.title},
        }
        status_code, payload = self._request("POST", "/payments", json=body)
        if not isinstance(payload, dict):
            payload = {}
        data = payload.get("data")
        link = data.get("link") if isinstance(data, dict) else None
        if status_code >= 400 or payload.get("status") != "success" or not link:
            logger.error(f"Payment link not created for {tx_ref}: {payload}")
            raise UpstreamFailure("Failed to initialize payment")
        logger.info(f"Payment link created for {tx_ref} ({amount} {currency})")
        return link

    def verify_transaction(self, transaction_id) -> GatewayTransaction:
        transaction_id = str(transaction_id or "").strip()
        if not TRANSACTION_ID_PATTERN.match(transaction_id):
            raise ValidationError("Invalid transaction id")
        status_code, payload = self._request("GET", f"/transactions/{transaction_id}/verify")
        if status_code >= 400 or not isinstance(payload, dict):
            # Treated as not successful by the caller; the gateway gave no affirmative answer.
            return GatewayTransaction(transaction_id, None, "unverified", None, None,
                                      raw=payload if isinstance(payload, dict) else {})
        transaction = GatewayTransaction.from_verify_payload(transaction_id, payload)
        logger.info(f"Verified transaction {transaction_id}: status={transaction.status} "
                    f"tx_ref={transaction.tx_ref} amount={transaction.amount}")
        return transaction


def get_gateway():
    return current_app.extensions["payment_gateway"]
