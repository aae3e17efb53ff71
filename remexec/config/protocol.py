from __future__ import annotations

from typing import Any, Annotated, Dict, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)


def _to_kebab(name: str) -> str:
    return name.replace("_", "-")


class _BaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_kebab,
        populate_by_name=True,
    )


Slug = Annotated[
    str,
    Field(
        min_length=1,
        max_length=50,
        pattern=r"^[a-z0-9]+(-[a-z0-9]+)*$",
    ),
]

Verbosity = Literal["debug", "info", "warn", "error", "fatal"]

# Keys consumed locally; the transport never sees them.
LOCAL_OPTION_KEYS = frozenset(
    {"remember_host", "su_user", "su_password", "passwordless_sudo"}
)

# Accepted for compatibility with older callers, then dropped.
_OBSOLETE_OPTION_KEYS = frozenset(
    {"authentication_prompt_delay", "authentication-prompt-delay"}
)


class ElevationCredentials(_BaseModel):
    """The identity a command is switched to with ``su``."""

    model_config = ConfigDict(frozen=True)
    user: str = Field(..., min_length=1)
    password: str = Field(default="", repr=False)


class ExecutionOptions(_BaseModel):
    """Options for one remote host.

    Recognized keys configure this package; anything else is carried
    through unchanged to the transport (for paramiko:
    ``SSHClient.connect()`` keyword arguments such as ``port``,
    ``key_filename`` or ``timeout``).
    https://docs.paramiko.org/en/stable/api/client.html
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    # Record an unknown or changed host key and retry the connection once
    remember_host: bool = False
    # Transport log level
    verbose: Verbosity = "warn"
    # Fail instead of prompting for credentials
    non_interactive: bool = True
    # Use the ambient SSH agent | Paramiko: allow_agent
    use_agent: bool = False
    password: Optional[str] = Field(default=None, repr=False)

    # Elevation
    su_user: Optional[str] = None
    su_password: Optional[str] = Field(default=None, repr=False)
    passwordless_sudo: bool = False

    @model_validator(mode="before")
    @classmethod
    def drop_obsolete_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                k: v for k, v in data.items() if k not in _OBSOLETE_OPTION_KEYS
            }
        return data

    @model_validator(mode="after")
    def validate_elevation(self) -> ExecutionOptions:
        if self.passwordless_sudo and self.su_user is not None:
            raise ValueError(
                "passwordless-sudo cannot be combined with su-user"
            )
        return self

    @property
    def elevation(self) -> ElevationCredentials | None:
        """Elevation credentials, or None when commands run directly."""
        if self.su_user is None:
            return None
        return ElevationCredentials(
            user=self.su_user, password=self.su_password or ""
        )

    def transport_options(self) -> dict[str, Any]:
        """Options handed to the session provider."""
        result: dict[str, Any] = {
            "verbose": self.verbose,
            "non_interactive": self.non_interactive,
            "use_agent": self.use_agent,
        }
        if self.password is not None:
            result["password"] = self.password
        for key, value in (self.model_extra or {}).items():
            name = key.replace("-", "_")
            if name not in LOCAL_OPTION_KEYS:
                result[name] = value
        return result


class HostConfig(_BaseModel):
    """A remote host entry of the inventory."""

    model_config = ConfigDict(frozen=True)
    slug: Slug
    host: str = Field(..., min_length=1)
    user: str = Field(..., min_length=1)
    password: Optional[str] = Field(default=None, repr=False)
    known_hosts_file: str = "~/.ssh/known_hosts"
    options: ExecutionOptions = Field(
        default_factory=lambda: ExecutionOptions()
    )


class Config(_BaseModel):
    """Top-level host inventory."""

    hosts: Dict[str, HostConfig] = Field(default_factory=dict)

    # The host slug is the key in the hosts dict,
    # but we also want it as a field in the HostConfig objects.
    @field_validator("hosts", mode="before")
    @classmethod
    def inject_host_slugs(cls, v: Any, info: ValidationInfo) -> Any:
        return {
            slug: (
                {**data, "slug": slug}
                if isinstance(data, dict) and "slug" not in data
                else data
            )
            for slug, data in v.items()
        }
