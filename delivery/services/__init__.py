"""
Marketplace operations.

Each function takes the acting user explicitly and raises one of the
errors in ``delivery.exceptions`` when a precondition fails.
"""
