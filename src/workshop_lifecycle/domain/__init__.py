"""Domain layer: transition tables, ledger and aggregate rules.

Everything here is synchronous and side-effect free apart from the
stock ledger, which writes through its repository collaborator.
"""
