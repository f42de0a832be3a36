"""
API key lookup.

Keys come from environment variables, typically set in a .env file next to
the project (loaded with python-dotenv).
"""

import os
from pathlib import Path
from typing import Dict, Optional, Union

from dotenv import load_dotenv

# Credential id -> environment variable
ENV_VARS: Dict[str, str] = {
    "openai_api_key": "OPENAI_API_KEY",
    "anthropic_api_key": "ANTHROPIC_API_KEY",
}


class CredentialStore:
    """Reads API keys by credential id."""

    def __init__(self, env_file: Optional[Union[str, Path]] = None,
                 environ: Optional[Dict[str, str]] = None):
        """
        Args:
            env_file: .env file to load into the process environment
                (existing variables are not overridden)
            environ: Mapping to read from instead of os.environ
        """
        if env_file is not None and Path(env_file).exists():
            load_dotenv(env_file)
        self._environ = environ

    def read(self, key_id: str) -> Optional[str]:
        """Return the key for `key_id`, or None if it is unknown or unset."""
        env_var = ENV_VARS.get(key_id)
        if env_var is None:
            return None
        source = self._environ if self._environ is not None else os.environ
        value = (source.get(env_var) or "").strip()
        return value or None
