"""Shared test helpers for jobwatch.

- clock: deterministic FakeClock and settle() for timer-driven tests
"""
