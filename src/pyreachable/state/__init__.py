"""State/store layer.

The single place where raw path reports become the connection state seen
by readers, subscribers and notification observers.
"""
