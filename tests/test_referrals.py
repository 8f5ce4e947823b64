import re

import pytest

from ledger import referrals
from ledger.errors import UserNotFound
from ledger.referrals import commission, generate_referral_code, register_referral, list_referrals
from models import User


@pytest.mark.parametrize("amount, expected", [
    (5000, 500),
    (10000, 1000),
    (25000, 2500),
    (100000, 10000),
    (15, 2),     # 1.5 rounds half-up
    (14, 1),
    (5, 1),      # 0.5 rounds half-up
])
def test_commission_is_ten_percent_rounded_half_up(amount, expected):
    assert commission(amount) == expected


def test_commission_custom_rate():
    assert commission(5000, rate="0.05") == 250


def test_generated_code_is_local_part_plus_number(app):
    code = generate_referral_code("john.doe+ads@example.com")
    assert re.fullmatch(r"JOHNDOEADS\d{1,4}", code)


def test_generated_code_retries_on_collision(app, monkeypatch):
    taken = iter([True, True, False])
    monkeypatch.setattr(referrals.UserStore, "referral_code_taken", staticmethod(lambda code: next(taken)))
    code = generate_referral_code("amy@example.com")
    assert code.startswith("AMY")


def test_generated_code_falls_back_after_repeated_collisions(app, monkeypatch):
    answers = iter([True] * referrals.CODE_ATTEMPTS + [False])
    monkeypatch.setattr(referrals.UserStore, "referral_code_taken", staticmethod(lambda code: next(answers)))
    code = generate_referral_code("amy@example.com")
    assert re.fullmatch(r"AMY[A-Z0-9]{8}", code)


def test_register_referral_links_new_user_to_existing_code(make_user):
    referrer = make_user(email="lead@example.com")
    new_user = User(name="New", email="new@example.com", referral_code="NEW1")

    found = register_referral(new_user, f"  {referrer.referral_code.lower()} ")

    assert found.id == referrer.id
    assert new_user.referred_by == referrer.referral_code


def test_register_referral_ignores_unknown_or_empty_code(app):
    new_user = User(name="New", email="new@example.com", referral_code="NEW1")
    assert register_referral(new_user, "DOESNOTEXIST") is None
    assert register_referral(new_user, None) is None
    assert new_user.referred_by is None


def test_register_referral_never_reparents(make_user):
    first = make_user()
    second = make_user()
    new_user = User(name="New", email="new@example.com", referral_code="NEW1",
                    referred_by=first.referral_code)

    assert register_referral(new_user, second.referral_code) is None
    assert new_user.referred_by == first.referral_code


def test_list_referrals(make_user):
    referrer = make_user()
    make_user(name="Kid One", email="kid1@example.com", referred_by=referrer.referral_code)
    make_user(name="Kid Two", email="kid2@example.com", referred_by=referrer.referral_code)
    make_user(email="stranger@example.com")

    listed = list_referrals(referrer.id)

    assert [r["email"] for r in listed] == ["kid1@example.com", "kid2@example.com"]
    assert listed[0]["name"] == "Kid One"
    assert listed[0]["createdAt"]


def test_list_referrals_unknown_user(app):
    with pytest.raises(UserNotFound):
        list_referrals(99)
