"""
NumPy-backed implementations of the KeyCain domain contracts.
"""
