"""
Order Engine

Order placement, inventory reservation and order lifecycle service.
"""

__version__ = "1.0.0"
