"""
Test configuration for Enigma interpreter tests
"""

import io
import sys
from pathlib import Path

import pytest

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from environment import Environment
from evaluator import Evaluator
from parser import parse


@pytest.fixture
def parse_program():
    """Parse source, failing the test on any parse error"""
    def _parse(source):
        program, errors = parse(source)
        assert errors == [], [e.message for e in errors]
        return program
    return _parse


@pytest.fixture
def run(parse_program):
    """Evaluate source and return the result object; printed text lands in run.output"""
    output = io.StringIO()

    def _run(source, **options):
        options.setdefault("output", output)
        evaluator = Evaluator(source=source, **options)
        return evaluator.evaluate_program(parse_program(source), Environment())

    _run.output = output
    return _run
