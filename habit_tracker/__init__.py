"""Personal habit and routine tracker."""

__version__ = "0.1.0"
