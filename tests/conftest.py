"""Global test fixtures."""

import os

# Set the signing key before any test modules import Config
# This must happen at module load time, not in a fixture
os.environ.setdefault("FEDAUTH_AUTH__JWT__SIGNING_KEY", "test-signing-key-for-unit-tests-32b")
os.environ.setdefault("FEDAUTH_DATABASE__AUTO_MIGRATE", "false")
