"""formgate: authenticated REST gateway for Formie forms and submissions."""

__version__ = "1.0.0"
