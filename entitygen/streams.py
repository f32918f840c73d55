# File: entitygen/streams.py
"""
entitygen - Change Stream Generator
=====================================
Emits ``streams.py``: the entity's notification channel and a typed
subscriber.

The channel name is a pure function of the table name (``channel()``
calls ``runtime.channel_name``); there is no module-level registry.  The
subscriber decodes every payload with ``decode_<entity>_event`` and keeps
transport failures (``StreamTransportError``) apart from undecodable
payloads (``StreamDecodeError``).
"""

from __future__ import annotations

import logging
from typing import Dict, List, Set

from entitygen.events import decode_function_name, event_union_name
from entitygen.models import EntityModel, GenerationConfig
from entitygen.utils import make_docstring, py_literal, render_module

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitygen.streams")

_I: str = " " * 4


class StreamsGenerator:
    """Stateless generator for ``streams.py``."""

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config

    def generate(self, entity: EntityModel) -> str:
        union: str = event_union_name(entity)
        decode: str = decode_function_name(entity)
        subscriber: str = entity.ident_with("", "Subscriber")
        imports: Dict[str, Set[str]] = {
            "typing": {"Any"},
            self._config.runtime_module: {"NotificationSubscriber", "channel_name"},
            ".events": {union, decode},
        }

        lines: List[str] = [f"TABLE = {py_literal(entity.table)}", "", ""]
        lines.append("def channel() -> str:")
        lines.extend(make_docstring(f"Notification channel carrying {entity.name} events.", 1))
        lines.append(f"{_I}return channel_name(TABLE)")
        lines.extend(["", ""])
        lines.append(f"class {subscriber}(NotificationSubscriber[{union}]):")
        lines.extend(
            make_docstring(
                f"Receives {entity.name} events from ``channel()``.\n\n"
                f"``recv()`` raises ``StreamTransportError`` once the connection is gone\n"
                f"and ``StreamDecodeError`` for payloads that are not {entity.name} events.\n\n"
                f"Usage::\n\n"
                f"    subscriber = await {subscriber}.subscribe(connection)\n"
                f"    event = await subscriber.recv()",
                1,
            )
        )
        lines.extend([
            "",
            f"{_I}@classmethod",
            f"{_I}async def subscribe(cls, connection: Any) -> {subscriber}:",
            f"{_I * 2}return await cls.listen(connection, channel(), {decode})",
        ])

        logger.debug("Generated stream subscriber for %s.", entity.name)
        return render_module(
            f"Change notifications of {entity.name}.\n\nGenerated by entitygen; do not edit.",
            imports,
            lines,
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = ["StreamsGenerator"]

logger.debug("entitygen.streams loaded — %d public symbols.", len(__all__))
