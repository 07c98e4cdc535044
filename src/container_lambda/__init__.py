"""Deploy container image Lambda functions and keep their tags consistent."""

__version__ = "0.1.0"
