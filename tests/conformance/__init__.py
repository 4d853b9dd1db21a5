"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the farm factory.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing calls, including nested deploy + initialize
2. conservation.py - Tokens are only moved, never created or destroyed by farms
3. accrual_properties.py - Reward accounting bounds and monotonicity

These tests use hypothesis for property-based testing.
"""
