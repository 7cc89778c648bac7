"""Dynamic listen address strategies.

A static ``listenAddress`` string is fine for a fixed deployment, but
some environments only know the port at start-up: a scheduler injects
it through an environment variable, or a test wants an ephemeral port.
Those cases plug in a *strategy* instead: any object with a
``resolve() -> str`` method.

Two strategies ship with the configuration surface:

  type: config       value is used verbatim ("0.0.0.0:9090")
  type: environment  port read from an env var, joined with hostname

    dynamicListenAddress:
      type: environment
      envVarListenPort: METRICS_PORT
      hostname: 127.0.0.1
"""

from __future__ import annotations

import os
from typing import Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from promreporter.core.errors import ListenAddressError

DEFAULT_LISTEN_PORT_ENV_VAR = "PORT"


@runtime_checkable
class ListenAddressResolver(Protocol):
    def resolve(self) -> str:
        """Return a ``host:port`` address or raise ListenAddressError."""
        ...


class ListenAddressConfiguration(BaseModel):
    model_config = ConfigDict(frozen=True, validate_by_name=True, validate_by_alias=True)

    type: Literal["config", "environment"] = "config"
    value: str | None = None
    env_var_listen_port: str | None = Field(None, alias="envVarListenPort")
    hostname: str | None = None

    def resolve(self) -> str:
        if self.type == "config":
            if self.value is None or not self.value.strip():
                raise ListenAddressError("listen address type 'config' requires a value")
            return self.value.strip()

        env_var = self.env_var_listen_port or DEFAULT_LISTEN_PORT_ENV_VAR
        raw = os.environ.get(env_var, "").strip()
        if not raw:
            raise ListenAddressError(f"environment variable {env_var} is not set")
        try:
            port = int(raw)
        except ValueError:
            raise ListenAddressError(
                f"environment variable {env_var} is not a valid port (got {raw!r})"
            ) from None

        return f"{self.hostname or ''}:{port}"
