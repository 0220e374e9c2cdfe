"""Coding-agent CLI backends."""

from skill_eval.config import AgentConfig, BackendType

from .auth import AuthError, resolve_credentials
from .base import AgentBackend, AgentResponse, Credentials
from .claude import ClaudeCodeBackend
from .codex import CodexBackend


def create_backend(
    config: AgentConfig,
    credentials: Credentials | None = None,
    grace_seconds: float = 10.0,
) -> AgentBackend:
    """Factory function to create an agent backend from config."""
    mapping: dict[BackendType, type[AgentBackend]] = {
        BackendType.CLAUDE: ClaudeCodeBackend,
        BackendType.CODEX: CodexBackend,
    }
    cls = mapping[config.backend]
    return cls(config, credentials, grace_seconds)


__all__ = [
    "AgentBackend",
    "AgentResponse",
    "AuthError",
    "ClaudeCodeBackend",
    "CodexBackend",
    "Credentials",
    "create_backend",
    "resolve_credentials",
]
