"""hostprov — idempotent host provisioning runner."""

__version__ = "0.1.0"
