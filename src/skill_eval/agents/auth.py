"""Credential resolution, done once per scheduler run."""

from __future__ import annotations

import os
from typing import Mapping

from skill_eval.config import AgentConfig, BackendType
from skill_eval.process import run_command

from .base import Credentials

DEFAULT_API_KEY_ENV = {
    BackendType.CLAUDE: "ANTHROPIC_API_KEY",
    BackendType.CODEX: "OPENAI_API_KEY",
}

DEFAULT_TOKEN_ENV = {
    BackendType.CLAUDE: "ANTHROPIC_AUTH_TOKEN",
    BackendType.CODEX: "OPENAI_API_KEY",
}


class AuthError(RuntimeError):
    """No credential available. Fatal for every evaluation of the run."""


def resolve_credentials(config: AgentConfig, environ: Mapping[str, str] | None = None) -> Credentials:
    """Prefer a directly supplied API key, else run the token-exchange command."""
    environ = os.environ if environ is None else environ
    auth = config.auth

    key_env = auth.api_key_env or DEFAULT_API_KEY_ENV[config.backend]
    if environ.get(key_env):
        return Credentials(env={key_env: environ[key_env]}, source="api_key")

    if not auth.token_command:
        raise AuthError(f"{key_env} is not set and no token_command is configured")

    # Token is read from stdout alone
    result = run_command(auth.token_command, timeout=auth.token_timeout_seconds, merge_stderr=False)
    token = result.output.strip().splitlines()[-1].strip() if result.output.strip() else ""
    if not result.success or not token:
        raise AuthError(
            f"Token exchange failed ({' '.join(auth.token_command)}, exit code {result.returncode})"
        )

    token_env = auth.token_env_var or DEFAULT_TOKEN_ENV[config.backend]
    env = dict(auth.extra_env)
    env[token_env] = token
    return Credentials(env=env, source="token_exchange")
