import os

# Keep a developer's shell settings out of the tests
os.environ.pop("CHE_NAMESPACE", None)
os.environ.pop("CHE_TEMPLATES", None)

from tests.fixtures import *  # noqa: F401,F403,E402
