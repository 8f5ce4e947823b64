# ledger/promo.py
from flask import current_app
from ledger.stores import PromoStore
from logger import ledger_logger as logger


class PromoCounter:
    """Global capped counter; successful deposits take one unit while any remain."""

    @staticmethod
    def ensure():
        """Seed the singleton row with PROMO_LIMIT on first use. Commits its own insert."""
        return PromoStore.get_or_create(current_app.config.get("PROMO_LIMIT", 300))

    @staticmethod
    def try_consume() -> bool:
        """
        Take one unit if used < limit. Returns False once exhausted; never raises
        for that. Runs inside the caller's transaction.
        """
        applied = PromoStore.try_consume()
        if applied:
            logger.info("Promo unit consumed")
        return applied

    @staticmethod
    def status() -> dict:
        promo = PromoCounter.ensure()
        return promo.to_dict()
