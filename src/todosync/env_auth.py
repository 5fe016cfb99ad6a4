"""Environment-based authentication for todosync.

Resolves the GitHub token from environment variables, optionally after
loading a ``.env`` file (python-dotenv). Existing environment variables are
never overridden by the file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

TOKEN_ALTERNATIVES = ("GH_TOKEN", "GITHUB_ACCESS_TOKEN", "GH_ACCESS_TOKEN", "GITHUB_PAT")
DOTENV_CANDIDATES = (".env", ".env.local")


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    github_token_var: str = "GITHUB_TOKEN"
    base_dir: Path | None = None


class EnvironmentAuthManager:
    """Finds credentials in the process environment and ``.env`` files."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self._dotenv_loaded = False
        if config.load_dotenv:
            self._load_dotenv()

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def _load_dotenv(self) -> None:
        base = self.config.base_dir or Path.cwd()
        if self.config.dotenv_path:
            candidates = [base / self.config.dotenv_path]
        else:
            candidates = [base / name for name in DOTENV_CANDIDATES]
        for env_file in candidates:
            if env_file.is_file():
                load_dotenv(env_file, override=False)
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_file}")
                return

    def get_github_token(self) -> str | None:
        """Get GitHub token from environment variables."""
        for var in (self.config.github_token_var, *TOKEN_ALTERNATIVES):
            token = (os.getenv(var) or "").strip()
            if token:
                self.logger.debug(f"Found GitHub token in {var}")
                return token
        return None

    def get_authentication_recommendations(self) -> list[str]:
        if self.get_github_token():
            return []
        return [
            f"Set {self.config.github_token_var} environment variable",
            f"Or create .env file with {self.config.github_token_var}=your_token",
            "Or set github.token in the config file (use $VAR to reference the environment)",
        ]


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    """Factory function to create environment authentication manager."""
    return EnvironmentAuthManager(config or EnvAuthConfig())


__all__ = ["EnvAuthConfig", "EnvironmentAuthManager", "create_env_auth_manager"]
