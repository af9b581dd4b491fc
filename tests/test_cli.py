"""Tests for the command-line utilities."""

import json
from pathlib import Path

from click.testing import CliRunner

from pytest_stepwise.__main__ import cli

EXAMPLES = Path(__file__).parent / 'examples'


def test_schema() -> None:
    """Print the document JSON Schema."""
    result = CliRunner().invoke(cli, ['schema'])

    assert result.exit_code == 0

    schema = json.loads(result.output)
    assert schema['title'] == 'Feature'
    assert {'Scenario', 'Background', 'Step', 'Examples'} <= set(schema['$defs'])


def test_validate(tmp_path: Path) -> None:
    """Report valid and invalid documents."""
    broken = tmp_path / 'broken.yml'
    broken.write_text('name: [unclosed\n', encoding='utf-8')

    result = CliRunner().invoke(cli, ['validate', f'{EXAMPLES / "calculator.yml"}'])

    assert result.exit_code == 0
    assert result.output.strip().endswith('calculator.yml: ok (2 scenarios)')

    result = CliRunner().invoke(cli, ['validate', f'{EXAMPLES / "calculator.yml"}', f'{broken}'])

    assert result.exit_code == 1
    assert 'broken.yml: Invalid YAML' in result.output


def test_validate_requires_files() -> None:
    """Refuse to run without files."""
    result = CliRunner().invoke(cli, ['validate'])

    assert result.exit_code == 2
