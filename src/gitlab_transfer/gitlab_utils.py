from __future__ import annotations

import logging
import os

from gitlab import Gitlab

from . import utils

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)


def get_token(env_var: str, default_pass_path: str, pass_path: str | None = None) -> str | None:
    """Get a GitLab token from a pass path, an env var, or a default pass location."""
    # Try pass path first
    if pass_path:
        return utils.get_pass_value(pass_path)

    # Try environment variable
    token: str | None = os.environ.get(env_var)
    if token:
        return token

    # Try default pass path
    try:
        return utils.get_pass_value(default_pass_path)
    except (ValueError, utils.PassError):
        logger.warning(f"No GitLab token specified nor found in {env_var} or pass:{default_pass_path}")
        return None


def get_client(url: str, token: str | None = None, *, ssl_verify: bool = True) -> Gitlab:
    """Get a GitLab client for the instance at ``url`` using the token."""
    return Gitlab(url, private_token=token, ssl_verify=ssl_verify)
