"""
Order Engine
Configuration Module
"""
from .settings import Settings, OrderSettings, DatabaseSettings, get_settings

__all__ = ["Settings", "OrderSettings", "DatabaseSettings", "get_settings"]
