"""Paddle webhook inbound system.

Receives transaction notifications from Paddle. Each webhook is
signature-verified, then dispatched to the customer and admin email channels.
"""
