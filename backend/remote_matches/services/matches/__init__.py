"""Remote match domain services: lifecycle, locks, scoring and expiry.

This package holds the state machine and its collaborators. HTTP routes and
socket handlers import from here, keeping transport concerns separated from
match rules.
"""
