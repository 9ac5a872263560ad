"""FieldRoute: route optimization and work-estimate engine."""

__version__ = "0.1.0"
