"""Hook specifications of the pytest-stepwise plugin."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from _pytest.config import Config

    from pytest_stepwise.core import Suite


def pytest_stepwise_configure(suite: 'Suite', config: 'Config') -> None:
    """Configure the suite before the first feature file is collected.

    Implement this hook in a `conftest.py` to register parameter types,
    step definitions and hooks::

        def pytest_stepwise_configure(suite, config):
            @suite.step('I have {int} cats')
            def have_cats(reporter, context, count: int) -> None:
                context['cats'] = count

    Args:
        suite: Suite shared by every collected feature.
        config: Pytest configuration object.
    """
