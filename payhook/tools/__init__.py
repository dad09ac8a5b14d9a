"""Clients for the payment provider's REST API."""
