# ledger/catalog.py
from collections import namedtuple

Package = namedtuple("Package", ["id", "price", "daily_reward"])

# Static catalog; prices and daily rewards are in whole naira.
PACKAGES = (
    Package(id=1, price=5000, daily_reward=500),
    Package(id=2, price=10000, daily_reward=1000),
    Package(id=3, price=25000, daily_reward=2500),
    Package(id=4, price=50000, daily_reward=5000),
    Package(id=5, price=100000, daily_reward=10000),
)

PACKAGE_MAP = {package.id: package for package in PACKAGES}


def get_package(package_id):
    """Look up a package by id; accepts whole numbers or digit strings. Returns None if unknown."""
    if isinstance(package_id, str):
        package_id = package_id.strip()
        if not package_id.isdecimal():
            return None
        package_id = int(package_id)
    elif isinstance(package_id, float) and package_id.is_integer():
        package_id = int(package_id)
    elif isinstance(package_id, bool) or not isinstance(package_id, int):
        return None
    return PACKAGE_MAP.get(package_id)


def package_to_dict(package):
    return {"id": package.id, "price": package.price, "daily": package.daily_reward}


def catalog_as_list():
    return [package_to_dict(p) for p in PACKAGES]
