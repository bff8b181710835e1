"""Prometheus text exposition of an in-process metrics registry."""
