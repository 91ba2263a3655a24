"""CLI command modules.

Command Groups:
- operator: Install, update and delete the Che operator
"""

from .operator import operator_app

__all__ = [
    "operator_app",
]
