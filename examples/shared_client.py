"""Build one client with the builder and share it across concurrent tasks."""

import asyncio

from pydantic import BaseModel

from portkey_client import PortkeyClient, ProviderAuth


class Embedding(BaseModel):
    embedding: list[float]
    index: int


class EmbeddingList(BaseModel):
    data: list[Embedding]


async def embed(client: PortkeyClient, text: str) -> int:
    resp = await client.post(
        "/embeddings",
        EmbeddingList,
        json={"model": "text-embedding-3-small", "input": text},
    )
    return len(resp.content.data[0].embedding)


async def main() -> None:
    client = (
        PortkeyClient.builder()
        .with_auth_method(ProviderAuth("openai", "Bearer sk-..."))
        .with_timeout(60)
        .with_max_retries(2)
        .with_cache_namespace("examples")
        .build_client()  # API key comes from PORTKEY_API_KEY
    )

    async with client:
        texts = ["alpha", "beta", "gamma"]
        # Each task gets its own handle onto the same transport
        dims = await asyncio.gather(*(embed(client.clone(), t) for t in texts))
        print(dict(zip(texts, dims)))


if __name__ == "__main__":
    asyncio.run(main())
