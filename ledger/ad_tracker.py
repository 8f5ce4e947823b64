from collections import namedtuple
from datetime import datetime, timezone
from extensions import db
from ledger.catalog import get_package
from ledger.errors import UserNotFound, NoActiveSubscription
from ledger.locks import user_lock
from ledger.stores import UserStore, AdProgressStore, atomic
from logger import ledger_logger as logger

DAILY_AD_CAP = 5

COUNTED = "counted"
REWARDED = "rewarded"
ALREADY_REWARDED = "already_rewarded"
LIMIT_REACHED = "limit_reached"

AdWatchResult = namedtuple("AdWatchResult", ["watched", "rewarded", "new_balance", "status", "reward"])


def ad_day(now=None):
    """The UTC calendar day an ad watch counts towards."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).date()


def record_ad_watch(user_id, now=None) -> AdWatchResult:
    """
    Count one ad for today. The fifth ad of the day pays the package's daily
    reward; anything after that is refused without touching the counter.
    """
    day = ad_day(now)

    with user_lock(user_id):
        with atomic(f"ad watch user={user_id} day={day}"):
            user = UserStore.get(user_id)
            if not user:
                raise UserNotFound()
            package = get_package(user.package_id)
            if not package:
                raise NoActiveSubscription()

            progress = AdProgressStore.get_or_create(user.id, day)
            user = UserStore.get_for_update(user.id)

            if progress.rewarded:
                return AdWatchResult(progress.count, True, user.balance, ALREADY_REWARDED, 0)
            if progress.count >= DAILY_AD_CAP:
                return AdWatchResult(progress.count, False, user.balance, LIMIT_REACHED, 0)

            if not AdProgressStore.increment(progress.id, DAILY_AD_CAP):
                # Lost to a writer in another process; re-read what it left.
                db.session.refresh(progress)
                status = ALREADY_REWARDED if progress.rewarded else LIMIT_REACHED
                return AdWatchResult(progress.count, progress.rewarded, user.balance, status, 0)

            db.session.refresh(progress)
            reward, status = 0, COUNTED
            if progress.count == DAILY_AD_CAP and AdProgressStore.mark_rewarded(progress.id, DAILY_AD_CAP):
                UserStore.credit_balance(user.id, package.daily_reward)
                reward, status = package.daily_reward, REWARDED

            db.session.refresh(user)
            result = AdWatchResult(progress.count, reward > 0, user.balance, status, reward)

    if reward:
        logger.info(f"Daily ad reward of {reward} credited to user {user_id} for {day}")
    return result
