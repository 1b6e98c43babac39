"""Market22 webhook receiver.

Verifies, de-duplicates and dispatches webhooks sent by the Market22
e-commerce platform.
"""

__version__ = "0.1.0"
