"""
HIGHTECH ledger: balance mutations and the eligibility rules around them.

Import the submodules directly (ledger.account, ledger.deposits, ...);
nothing is re-exported here so the models and stores load in order.
"""
