import asyncio
from functools import lru_cache
from typing import Optional

from openai import AsyncOpenAI

from config.campaign_config import CampaignConfig


@lru_cache(maxsize=1)
def get_client() -> AsyncOpenAI:
    return AsyncOpenAI(api_key=CampaignConfig.OPENAI_API_KEY)


async def chat_completion(
    messages: list,
    model: str = "gpt-4.1",
    timeout: Optional[float] = None,
    **kwargs,
):
    """Run a chat completion, bounded by ``timeout`` seconds when given.

    A timeout surfaces as ``asyncio.TimeoutError`` so callers treat it like
    any other failed call.
    """
    client = get_client()
    request = client.chat.completions.create(model=model, messages=messages, **kwargs)
    if timeout is None:
        return await request
    return await asyncio.wait_for(request, timeout=timeout)


def response_text(response) -> str:
    if not response.choices:
        return ""
    return response.choices[0].message.content or ""
