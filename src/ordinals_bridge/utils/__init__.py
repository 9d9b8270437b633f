"""Clients and storage helpers shared by the bridge services."""
