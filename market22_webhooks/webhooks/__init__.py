"""Webhook inbound system for Market22.

Each webhook is signature-verified, deduplicated, and dispatched async.
"""
