"""SSV validator onboarding automation."""

__version__ = "0.1.0"
