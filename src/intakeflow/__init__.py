"""intakeflow: flow graph, validator and navigator for multi-step intakes."""

__version__ = "0.3.0"
