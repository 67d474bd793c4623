"""
Serving Module

HTTP transport for the order engine.
"""
