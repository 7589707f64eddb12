"""Job crawler: discover, classify and store job postings from a listings site."""

__version__ = "0.1.0"
