"""Base deployer class with shared functionality."""

from abc import ABC, abstractmethod
from typing import Any

from che_installer.cli.shared.console import CLIConsole


class BaseDeployer(ABC):
    """Abstract base class for all deployers."""

    def __init__(self, console: CLIConsole):
        """Initialize the deployer.

        Args:
            console: CLI console for output
        """
        self.console = console

    @abstractmethod
    def deploy(self, **kwargs: Any) -> None:
        """Install into the cluster.

        Args:
            **kwargs: Deployer-specific options
        """
        pass

    @abstractmethod
    def update(self, **kwargs: Any) -> None:
        """Upgrade an existing installation.

        Args:
            **kwargs: Deployer-specific options
        """
        pass

    @abstractmethod
    def teardown(self, **kwargs: Any) -> None:
        """Remove an installation.

        Args:
            **kwargs: Deployer-specific options
        """
        pass

    def success(self, message: str) -> None:
        """Print a success message.

        Args:
            message: The message to print
        """
        self.console.ok(message)

    def error(self, message: str) -> None:
        """Print an error message.

        Args:
            message: The message to print
        """
        self.console.error(message)

    def warning(self, message: str) -> None:
        """Print a warning message.

        Args:
            message: The message to print
        """
        self.console.warn(message)

    def info(self, message: str) -> None:
        """Print an info message.

        Args:
            message: The message to print
        """
        self.console.info(message)
