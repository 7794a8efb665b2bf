"""Dataset profiling, insight and chart recommendation engine."""

__version__ = "1.0.0"
