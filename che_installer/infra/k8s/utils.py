"""Utility functions for the Kubernetes infrastructure layer.

Provides helper functions for running async code in sync contexts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


def run_sync(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine in a blocking sync context.

    This is how the synchronous CLI commands drive the async installer
    pipeline: one event loop per call, torn down afterwards.

    Args:
        coro: The coroutine to execute

    Returns:
        The result of the coroutine

    Example:
        from che_installer.infra.k8s import Kr8sController, run_sync

        controller = Kr8sController()
        supported = run_sync(controller.is_api_extension_supported("v1"))
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # No running loop, create a new one
        return asyncio.run(coro)
    else:
        if loop.is_running():
            # Create a new loop in a thread to avoid blocking
            import concurrent.futures

            with concurrent.futures.ThreadPoolExecutor() as pool:
                future = pool.submit(asyncio.run, coro)
                return future.result()
        return loop.run_until_complete(coro)
