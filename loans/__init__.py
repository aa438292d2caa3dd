"""loans/ -- Loan applications: eligibility scoring, persistence, lifecycle.

Layer rule: loans/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or auth/.
"""
