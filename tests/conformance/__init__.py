"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_balance_identity.py - total == available + held after every record
2. test_dropped_records.py - rejected records never change an account
3. test_lock_monotonic.py - a locked account stays locked
4. test_replay_determinism.py - replay and per-client interleaving give identical results

These tests use hypothesis for property-based testing.
"""
