"""Browser session control plane for voice-driven agents."""

__version__ = "0.3.0"
