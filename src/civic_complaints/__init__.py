"""Guest complaint submission workflow for the civic-complaint portal."""

__version__ = "0.1.0"
