"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the points ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Nothing is paid beyond the penalized budget; breakage is never paid
2. atomicity.py - All-or-nothing settlement, including under concurrent attempts
3. idempotency.py - A project is settled at most once
4. determinism.py - Penalty arithmetic and replayed settlements are reproducible

These tests use hypothesis for property-based testing.
"""
