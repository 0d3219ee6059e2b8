"""
Test suite for custody-ledger

Contains:
- tests/unit/          : Unit tests for individual modules and bank flows
"""
