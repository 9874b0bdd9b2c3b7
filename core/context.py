from __future__ import annotations

import os
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

AUTODARTS_PORT = 3180
_LAN_HOST = re.compile(r"^192\.168\.\d{1,3}\.\d{1,3}$")
DARTCOUNTER_HOST_SUFFIX = "dartcounter.net"


class Role(str, Enum):
    PRODUCER = "producer"
    CONSUMER = "consumer"


def detect_role(url: str) -> Optional[Role]:
    """
    Pick the role from the page a process drives.

    - AutoDarts board manager (port 3180 on localhost or a 192.168.x.x host)
      produces rounds
    - DartCounter (*.dartcounter.net) consumes them
    """
    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        port = parsed.port
    except ValueError:
        return None

    if port == AUTODARTS_PORT and (host == "127.0.0.1" or _LAN_HOST.match(host)):
        return Role.PRODUCER

    if host == DARTCOUNTER_HOST_SUFFIX or host.endswith("." + DARTCOUNTER_HOST_SUFFIX):
        return Role.CONSUMER

    return None


def _new_context_id(role: Role) -> str:
    return f"{role.value}-{os.getpid()}-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class BridgeContext:
    # -------------------------------------------------
    # CORE (fixed for the process lifetime)
    # -------------------------------------------------
    role: Role
    url: str

    # Store origin for every write made by this process
    context_id: str = field(default="")

    # -------------------------------------------------

    @property
    def is_producer(self) -> bool:
        return self.role is Role.PRODUCER

    @property
    def is_consumer(self) -> bool:
        return self.role is Role.CONSUMER

    # -------------------------------------------------

    def __post_init__(self):
        if not self.context_id:
            object.__setattr__(self, "context_id", _new_context_id(self.role))

    @classmethod
    def from_url(cls, url: str, *, context_id: Optional[str] = None) -> "BridgeContext":
        role = detect_role(url)
        if role is None:
            raise RuntimeError(
                f"Unsupported page: {url} "
                "(expected AutoDarts on :3180 or app.dartcounter.net)"
            )
        return cls(role=role, url=url, context_id=context_id or "")
