"""mindone: point at a rendered element, turn it into an edit prompt, hand it to an agent."""

__version__ = "0.1.0"
