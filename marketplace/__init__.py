"""Seller subscription entitlement and credit reconciliation engine."""

import logging

__version__ = "0.1.0"

# Library logger: records go nowhere until the host configures handlers
logging.getLogger("marketplace").addHandler(logging.NullHandler())
