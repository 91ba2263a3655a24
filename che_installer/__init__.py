"""Installer for the Che operator and its Kubernetes resources."""

__version__ = "0.1.0"
