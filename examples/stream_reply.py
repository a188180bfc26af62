"""
Send one prompt to an OpenCode server and stream the reply.

Usage:
    # Start a server first (or set OPENCODE_SERVER_URL)
    opencode serve --port 4096

    python examples/stream_reply.py "Explain what this repository does"

    # With debug logging enabled:
    OPENCODERS_LOG_LEVEL=DEBUG python examples/stream_reply.py "hi"

Key features demonstrated:
- Server discovery
- Session creation
- Sending a message while consuming the event stream
- Stopping when the session goes idle
"""

from __future__ import annotations

import asyncio
import sys

from rich.console import Console

from opencoders_sdk import IdPrefix, OpenCodeClient, generate_id
from opencoders_sdk.events import MessagePartUpdated, SessionError, SessionIdle
from opencoders_sdk.models import TextPart, ToolPart

PROVIDER = "anthropic"
MODEL = "claude-sonnet-4-20250514"

console = Console()


async def main(prompt: str) -> None:
    async with await OpenCodeClient.discover() as client:
        session = await client.create_session()
        console.print(f"[dim]session {session.id}[/dim]")

        texts: dict[str, str] = {}
        async with await client.subscribe_events() as stream:
            await client.send_message(session.id, generate_id(IdPrefix.MESSAGE), prompt, PROVIDER, MODEL)

            async for event in stream:
                if event.session_id != session.id:
                    continue
                if isinstance(event, MessagePartUpdated):
                    part = event.part
                    if isinstance(part, TextPart):
                        texts[part.id] = part.text
                    elif isinstance(part, ToolPart):
                        console.print(f"[dim]⚙ {part.tool} ({part.state.status})[/dim]")
                elif isinstance(event, SessionError):
                    console.print(f"[red]{event.message}[/red]")
                    break
                elif isinstance(event, SessionIdle):
                    break

        console.print("\n".join(texts.values()))


if __name__ == "__main__":
    asyncio.run(main(" ".join(sys.argv[1:]) or "Hello!"))
