"""Decide whether the reporter owns a socket, and where.

Strict priority, first match wins:

  1. dynamicListenAddress set  → ask the strategy; its failure is final
  2. listenAddress non-blank   → use it (trimmed)
  3. neither                   → no socket; attach to the default mux

A dynamic strategy exists because the static value may be stale (an
ephemeral port, a scheduler-assigned port), so it always wins, and a
failing strategy never falls back to the static address.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from promreporter.core.errors import ListenAddressError

if TYPE_CHECKING:
    from promreporter.models.configuration import Configuration


@dataclass(frozen=True, slots=True)
class ResolvedAddress:
    address: str
    bind: bool


NO_SOCKET = ResolvedAddress(address="", bind=False)


def resolve_listen_address(config: Configuration) -> ResolvedAddress:
    """Raises ListenAddressError when the dynamic strategy fails."""
    strategy = config.dynamic_listen_address
    if strategy is not None:
        try:
            address = strategy.resolve()
        except ListenAddressError:
            raise
        except Exception as exc:
            raise ListenAddressError(f"cannot resolve dynamic listen address: {exc}") from exc
        if not isinstance(address, str) or not address.strip():
            raise ListenAddressError(
                f"dynamic listen address resolved to {address!r}, expected host:port"
            )
        return ResolvedAddress(address=address.strip(), bind=True)

    address = config.listen_address.strip()
    if not address:
        return NO_SOCKET

    return ResolvedAddress(address=address, bind=True)
