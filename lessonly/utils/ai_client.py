# utils/ai_client.py
import asyncio
import json
import logging
import re
from typing import Any, Dict, Optional

import httpx
import openai

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

GEMINI = "google-gemini"
OPENAI = "openai"


class AIClientError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _error_message(resp: httpx.Response) -> str:
    """Prefer the provider's own error message when the body carries one."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
    return f"AI provider returned status {resp.status_code}"


async def _fetch_gemini(
    client: httpx.AsyncClient,
    prompt: str,
    *,
    api_url: str,
    api_key: str,
    generation_config: Dict[str, Any],
) -> str:
    payload = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": generation_config,
    }
    resp = await client.post(api_url, params={"key": api_key}, json=payload)
    if not resp.is_success:
        raise AIClientError(_error_message(resp), status_code=resp.status_code)

    try:
        data = resp.json()
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (ValueError, KeyError, IndexError, TypeError):
        raise AIClientError(f"Unexpected Gemini response: {resp.text[:500]}")


async def _fetch_openai(
    prompt: str,
    *,
    api_url: Optional[str],
    api_key: str,
    model: str,
    generation_config: Dict[str, Any],
    timeout: float,
) -> str:
    client = openai.AsyncOpenAI(api_key=api_key, base_url=api_url or None, timeout=timeout)
    try:
        response = await client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=generation_config.get("temperature", 0.7),
            max_tokens=generation_config.get("maxOutputTokens", openai.NOT_GIVEN),
            top_p=generation_config.get("topP", openai.NOT_GIVEN),
        )
    except openai.APIStatusError as e:
        raise AIClientError(e.message, status_code=e.status_code)
    except openai.APIError as e:
        raise AIClientError(str(e))
    finally:
        await client.close()
    return response.choices[0].message.content or ""


def extract_json_from_text(text: str) -> Optional[Any]:
    """
    Try to extract a JSON value from a text blob.
    Strips markdown code fences, then falls back to the first {...} block.
    """
    text = text.strip()
    # Handle markdown code blocks
    if text.startswith("```json"):
        text = re.sub(r"^```json\n?", "", text)
        text = re.sub(r"\n?```$", "", text)
    elif text.startswith("```"):
        text = re.sub(r"^```\n?", "", text)
        text = re.sub(r"\n?```$", "", text)

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        matches = re.search(r"\{.*\}", text, re.DOTALL)
        if matches:
            try:
                return json.loads(matches.group(0))
            except json.JSONDecodeError:
                pass
    logger.warning("Failed to extract any valid JSON from the AI response.")
    return None


async def call_ai_model(
    prompt: str,
    *,
    provider: str,
    api_url: str,
    api_key: str,
    model: str,
    generation_config: Optional[Dict[str, Any]] = None,
    timeout: float = 120.0,
    max_retries: int = 0,
    backoff_base: float = 1.0,
    http_client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    Call the configured AI provider and return the raw text it produced.
    """
    if not api_key:
        raise AIClientError("AI_API_KEY is not configured")
    generation_config = generation_config or {}

    last_exc = None
    for attempt in range(1, max_retries + 2):
        try:
            logger.info("AI call attempt %d (%s/%s)", attempt, provider, model)
            if provider == GEMINI:
                if http_client is not None:
                    raw_text = await _fetch_gemini(
                        http_client, prompt, api_url=api_url, api_key=api_key, generation_config=generation_config
                    )
                else:
                    async with httpx.AsyncClient(timeout=timeout) as client:
                        raw_text = await _fetch_gemini(
                            client, prompt, api_url=api_url, api_key=api_key, generation_config=generation_config
                        )
            elif provider == OPENAI:
                raw_text = await _fetch_openai(
                    prompt,
                    api_url=api_url,
                    api_key=api_key,
                    model=model,
                    generation_config=generation_config,
                    timeout=timeout,
                )
            else:
                raise ValueError(f"Unsupported AI provider: {provider}")

            logger.debug("AI raw response (truncated): %s", raw_text[:1000])
            return raw_text

        except httpx.RequestError as e:
            logger.warning("AI call failed on attempt %d: %s", attempt, e)
            last_exc = AIClientError(f"Could not reach AI provider: {e}")
        except AIClientError as e:
            logger.warning("AI call failed on attempt %d: %s", attempt, e)
            last_exc = e

        if attempt <= max_retries:
            await asyncio.sleep(backoff_base * (2 ** (attempt - 1)))

    raise last_exc
