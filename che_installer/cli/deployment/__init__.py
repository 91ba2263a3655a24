"""Deployment module for managing Che operator installations.

This package provides deployers built on the BaseDeployer interface:
- OperatorDeployer: Che operator, its RBAC, CRD and CheCluster

The package is organized into subpackages for modularity:
- operator_deployer: Components for operator deployment
"""

from .operator_deployer import DeploymentError, OperatorDeployer

__all__ = ["OperatorDeployer", "DeploymentError"]
