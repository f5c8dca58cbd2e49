"""Deployment orchestration service: submit, monitor, retry and cancel project deployments."""

__version__ = "0.1.0"
