"""sleuth: tool execution and result normalization for research agents."""

__version__ = "0.1.0"
