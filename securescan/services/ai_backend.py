# securescan/services/ai_backend.py

from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from securescan.config import settings

SYSTEM_PROMPT = (
    "You are a professional cybersecurity analyst. Always output valid JSON only, no commentary."
)

_client: Optional[AsyncOpenAI] = None


def get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        key = settings.openai_api_key
        if not key:
            raise RuntimeError("OPENAI_API_KEY is not set.")
        _client = AsyncOpenAI(api_key=key)
    return _client


async def generate_json(prompt: str, schema: Dict[str, Any], name: str = "assessment") -> str:
    """
    Send one prompt and return the raw JSON text of the structured answer.
    """
    client = get_client()
    response = await client.chat.completions.create(
        model=settings.openai_model,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        response_format={
            "type": "json_schema",
            "json_schema": {"name": name, "schema": schema, "strict": True},
        },
        temperature=0.2,
    )
    return (response.choices[0].message.content or "").strip()
