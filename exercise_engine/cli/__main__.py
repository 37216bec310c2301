"""Allow ``python -m exercise_engine.cli``."""

from .main import run

run()
