"""Step-matching and execution engine.

This package defines the core of the engine:
- parameter types expanding human-friendly step expressions;
- the step registry with its ambiguity tie-break rule;
- scenario outline expansion over example tables;
- the scenario and step executor with hooks and tag-based skip rules;
- the suite configuration surface and step library loading.

The primary public entry point is `Suite`, which collects configuration
and runs document trees through a host runner.
"""

from .executor import ExecutionState, Hooks, ScenarioExecutor, ScenarioRun
from .outline import OutlineExpander
from .parameters import ParameterTypes
from .registry import StepDefinition, StepRegistry
from .suite import Suite, SuiteSettings

__all__ = (
    'ExecutionState',
    'Hooks',
    'OutlineExpander',
    'ParameterTypes',
    'ScenarioExecutor',
    'ScenarioRun',
    'StepDefinition',
    'StepRegistry',
    'Suite',
    'SuiteSettings',
)
