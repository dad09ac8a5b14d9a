"""Outbound email channels for customer and admin notifications."""
