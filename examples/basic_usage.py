"""Basic usage of portkey-client."""

import asyncio

from pydantic import BaseModel

from portkey_client import PortkeyClient, configure_observability


class Message(BaseModel):
    """Assistant message."""

    role: str
    content: str


class Choice(BaseModel):
    index: int
    message: Message


class ChatCompletion(BaseModel):
    """Subset of the chat completion response."""

    id: str
    model: str
    choices: list[Choice]


async def main() -> None:
    """Send one chat completion through the gateway."""
    configure_observability()

    # Reads PORTKEY_API_KEY, PORTKEY_VIRTUAL_KEY, ... from the environment
    async with PortkeyClient.from_env() as client:
        resp = await client.post(
            "/chat/completions",
            ChatCompletion,
            json={
                "model": "gpt-4o-mini",
                "messages": [{"role": "user", "content": "What is the capital of France?"}],
            },
        )
        print(f"Answer: {resp.content.choices[0].message.content}")
        print(f"Trace: {resp.trace_id}  Cache: {resp.cache_status}")
        print(f"Latency: {resp.latency_ms:.0f}ms")


if __name__ == "__main__":
    asyncio.run(main())
