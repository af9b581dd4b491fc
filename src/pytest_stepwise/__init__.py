"""Pytest plugin and step-matching engine for behavior-driven scenarios.

The `pytest_stepwise` package binds the steps of pre-parsed feature
documents to registered handlers and runs them inside nested reporting
units, integrated with pytest.

Key features:
- parameter types expanding human-friendly step expressions;
- step resolution with a tie-break rule preferring literal patterns;
- scenario outlines expanded over example tables;
- before/after scenario and step hooks with tag-based skip rules;
- structured outcome records for external reporters.

The package keeps Gherkin parsing and report formatting outside: it
consumes document trees and emits outcome records.
"""
