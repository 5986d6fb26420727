"""Logging and metrics for KubeStep."""
