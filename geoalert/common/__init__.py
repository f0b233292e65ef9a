"""
Shared geographic and retry utilities.
"""
