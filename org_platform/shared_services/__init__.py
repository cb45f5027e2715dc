"""
Shared Services Module

Dependency providers for the process-wide components built at startup.
"""
