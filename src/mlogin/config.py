"""
Runtime configuration for mlogin.

Connection settings come from the environment (a ``.env`` file in the
working directory is loaded first); command-line flags override them.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

# ─── Session constants ───────────────────────────────────────────────

POLL_INTERVAL = 5.0  # seconds between job status queries
PING_INTERVAL = 30.0  # seconds between keep-alive frames
SIGNED_URL_EXPIRY = 300  # seconds the agent callback URL stays valid
LINKUP_TIMEOUT = 300.0  # seconds to wait for the agent to attach

AGENT_ASSET = "/poseidon/public/medusa/agent.sh"
CONFIG_COPIES = 1
JOB_NAME = "interactive session"

DEFAULT_COMMAND = "/bin/bash"
DEFAULT_CWD = "/"
DEFAULT_TERM = "xterm"
DEFAULT_ESCAPE_CHAR = "~"
ESCAPE_DISABLED = "none"

_TRUTHY = ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Connection and logging settings for one invocation."""

    url: str | None = None
    user: str | None = None
    token: str | None = None
    tls_insecure: bool = False
    log_level: str = "INFO"
    log_file: str | None = None

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "Settings":
        """Build settings from environment variables."""
        load_dotenv(env_file or Path.cwd() / ".env")
        return cls(
            url=os.getenv("MANTA_URL"),
            user=os.getenv("MANTA_USER"),
            token=os.getenv("MANTA_TOKEN"),
            tls_insecure=os.getenv("MANTA_TLS_INSECURE", "").lower() in _TRUTHY,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE"),
        )

    def missing(self) -> list[str]:
        """Names of required settings that are not set."""
        missing = []
        if not self.url:
            missing.append("MANTA_URL")
        if not self.user:
            missing.append("MANTA_USER")
        return missing
