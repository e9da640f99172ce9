"""Configuration for the ValidKit client.

Secret resolution order (CLI mode):
1. Environment variable
2. Project secrets: .validkit/secrets.env in CWD or parent directories
3. User secrets: ~/.validkit/secrets.env
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict

from . import __version__
from .errors import ErrorCategory, ValidKitError

DEFAULT_BASE_URL = "https://api.validkit.com"
DEFAULT_TIMEOUT = 30.0  # seconds
DEFAULT_MAX_RETRIES = 3
DEFAULT_CHUNK_SIZE = 1000
DEFAULT_USER_AGENT = f"ValidKit Python SDK/{__version__}"
SDK_LANGUAGE = "python"

# Cache for parsed secrets files
_secrets_cache: Dict[Path, Dict[str, str]] = {}


def _parse_env_file(path: Path) -> Dict[str, str]:
    """Parse a .env file into a dictionary."""
    if path in _secrets_cache:
        return _secrets_cache[path]

    result = {}
    if path.exists():
        with open(path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" in line:
                    key, value = line.split("=", 1)
                    value = value.strip()
                    # Remove quotes if present
                    if (value.startswith("'") and value.endswith("'")) or (
                        value.startswith('"') and value.endswith('"')
                    ):
                        value = value[1:-1]
                    result[key.strip()] = value

    _secrets_cache[path] = result
    return result


def _find_project_secrets() -> Optional[Path]:
    """Find .validkit/secrets.env in CWD or parent directories."""
    cwd = Path.cwd()

    # Check CWD and up to 4 parent levels
    for _ in range(5):
        secrets_file = cwd / ".validkit" / "secrets.env"
        if secrets_file.exists():
            return secrets_file
        if cwd.parent == cwd:
            break
        cwd = cwd.parent

    return None


def _get_user_secrets() -> Path:
    """Get user secrets file path (~/.validkit/secrets.env)."""
    return Path.home() / ".validkit" / "secrets.env"


def get_secret(name: str, default: Optional[str] = None) -> Optional[str]:
    """
    Get a secret value (CLI mode).

    Note: For library usage, pass the API key explicitly
    (ValidKitClient(api_key='...')). This function is for CLI mode only.

    Args:
        name: Secret name (e.g., 'VALIDKIT_API_KEY')
        default: Default value if not found

    Returns:
        Secret value or default
    """
    if os.environ.get(name):
        return os.environ[name]

    project_secrets = _find_project_secrets()
    if project_secrets:
        secrets = _parse_env_file(project_secrets)
        if name in secrets:
            return secrets[name]

    secrets = _parse_env_file(_get_user_secrets())
    if name in secrets:
        return secrets[name]

    return default


def require_secret(name: str) -> str:
    """
    Get a required secret, raise error if not found.

    Raises:
        ValidKitError: INVALID_API_KEY if the secret is not found
    """
    value = get_secret(name)
    if value is None:
        raise ValidKitError(
            ErrorCategory.INVALID_API_KEY,
            f"Required secret '{name}' not found. Set it via:\n"
            f"  - Environment variable: export {name}='...'\n"
            f"  - Project file: .validkit/secrets.env\n"
            f"  - User file: ~/.validkit/secrets.env",
        )
    return value


def find_env_file() -> Optional[Path]:
    """Find the secrets file the CLI would read."""
    project = _find_project_secrets()
    if project:
        return project
    user = _get_user_secrets()
    return user if user.exists() else None


@dataclass(frozen=True)
class ClientConfig:
    """Immutable client configuration, built once per client."""

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    default_chunk_size: int = DEFAULT_CHUNK_SIZE
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def build(
        cls,
        api_key: str,
        base_url: str = None,
        timeout: float = None,
        max_retries: int = None,
        default_chunk_size: int = None,
        user_agent: str = None,
    ) -> "ClientConfig":
        """
        Validate caller-supplied settings and fill in defaults.

        Raises:
            ValidKitError: INVALID_API_KEY without a key, VALIDATION for bad values
        """
        if not api_key or not isinstance(api_key, str):
            raise ValidKitError(ErrorCategory.INVALID_API_KEY, "API key is required")

        timeout = DEFAULT_TIMEOUT if timeout is None else timeout
        max_retries = DEFAULT_MAX_RETRIES if max_retries is None else max_retries
        chunk_size = DEFAULT_CHUNK_SIZE if default_chunk_size is None else default_chunk_size

        if timeout <= 0:
            raise ValidKitError(ErrorCategory.VALIDATION, "timeout must be positive")
        if not isinstance(max_retries, int) or max_retries < 0:
            raise ValidKitError(ErrorCategory.VALIDATION, "max_retries must be a non-negative integer")
        if not isinstance(chunk_size, int) or chunk_size <= 0:
            raise ValidKitError(ErrorCategory.VALIDATION, "default_chunk_size must be a positive integer")

        return cls(
            api_key=api_key,
            base_url=(base_url or DEFAULT_BASE_URL).rstrip("/"),
            timeout=float(timeout),
            max_retries=max_retries,
            default_chunk_size=chunk_size,
            user_agent=user_agent or DEFAULT_USER_AGENT,
        )

    def base_headers(self) -> Dict[str, str]:
        """Headers sent with every request. Returns a new dict on each call."""
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "X-SDK-Version": __version__,
            "X-SDK-Language": SDK_LANGUAGE,
        }
