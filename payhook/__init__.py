"""payhook: Paddle webhook receiver with signature verification and email notifications."""

__version__ = "0.1.0"
