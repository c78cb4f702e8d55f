"""Stackdriver helpers for Kubernetes: core metric queries, kubelet stats, an events API and exporters."""

__version__ = "0.1.0"