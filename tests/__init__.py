"""Test suite for the pytest-stepwise package.

Unit tests cover step matching, outline expansion, argument coercion
and scenario execution; pytester-based tests cover the pytest plugin.
"""
