"""delivr: run configured commands, log their output, report to Discord."""

__version__ = "0.3.0"
