"""Animal name matching behind a pay-per-request gate."""

__version__ = "0.1.0"
