"""OpenRouter chat-completions access for image generation / editing models."""
from typing import Any, Dict, List
import logging
import os
import re

import requests
from dotenv import load_dotenv

from models.errors import AITransformError
from repositories.image_repository import ImageRepository

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://openrouter.ai/api/v1/chat/completions"
_TEXT_DATA_URI_RE = re.compile(r"data:image/[^;]+;base64,[A-Za-z0-9+/=]+")


class OpenRouterRepository:
    """
    One HTTP call per transform: POST messages (+ images) → response JSON.
    No retries here; retry policy belongs to the caller.
    """

    def __init__(self, api_key: str | None = None, api_url: str | None = None,
                 timeout: float | None = None, session: requests.Session | None = None):
        self.api_key = api_key if api_key is not None else os.getenv("OPENROUTER_API_KEY", "")
        self.api_url = api_url or os.getenv("OPENROUTER_API_URL", DEFAULT_API_URL)
        self.timeout = timeout or float(os.getenv("OPENROUTER_TIMEOUT", "300"))
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        if not self.api_key or self.api_key == "your_openrouter_api_key_here":
            raise AITransformError("OPENROUTER_API_KEY is not configured. Please set it in .env")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "Clothing Pipeline",
        }

    def complete(self, model: str, content: List[Dict[str, Any]] | str, max_tokens: int = 4096) -> Dict[str, Any]:
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": content}],
            "modalities": ["image", "text"],
            "max_tokens": max_tokens,
        }
        try:
            response = self.session.post(self.api_url, headers=self._headers(),
                                         json=payload, timeout=self.timeout)
        except requests.RequestException as err:
            raise AITransformError(f"OpenRouter request failed: {err}") from err

        if not response.ok:
            raise AITransformError(f"OpenRouter API failed ({response.status_code}): {response.text[:500]}")
        try:
            return response.json()
        except ValueError as err:
            raise AITransformError(f"OpenRouter returned non-JSON body: {err}") from err

    @staticmethod
    def extract_images(data: Dict[str, Any]) -> List[str]:
        """
        Collect every image the response carries, in the formats seen so far:
            • message.images[].image_url.url
            • content blocks: image_url / image(source.data) / b64_json
            • root data[]: b64_json / url
        """
        error = data.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise AITransformError(f"OpenRouter error: {message}")

        choices = data.get("choices") or []
        message = choices[0].get("message") if choices else None
        if not message:
            raise AITransformError("No message in OpenRouter response")

        images: List[str] = []
        for entry in message.get("images") or []:
            url = (entry.get("image_url") or {}).get("url")
            if url:
                images.append(url)

        content = message.get("content")
        if isinstance(content, list):
            for block in content:
                if block.get("type") == "image_url" and (block.get("image_url") or {}).get("url"):
                    images.append(block["image_url"]["url"])
                if block.get("type") == "image" and (block.get("source") or {}).get("data"):
                    mime = block["source"].get("media_type", "image/png")
                    images.append(f"data:{mime};base64,{block['source']['data']}")
                if block.get("b64_json"):
                    images.append(f"data:image/png;base64,{block['b64_json']}")

        for item in data.get("data") or []:
            if item.get("b64_json"):
                images.append(f"data:image/png;base64,{item['b64_json']}")
            if item.get("url"):
                images.append(item["url"])

        if not images:
            text = OpenRouterRepository.extract_text(data)
            images.extend(_TEXT_DATA_URI_RE.findall(text))

        logger.debug(f"Found {len(images)} images in response")
        return images

    @staticmethod
    def extract_text(data: Dict[str, Any]) -> str:
        choices = data.get("choices") or []
        message = choices[0].get("message") if choices else None
        if not message:
            return ""
        content = message.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "\n".join(part.get("text", "") for part in content
                             if part.get("type") == "text" and part.get("text"))
        return message.get("text") or ""

    def fetch_image(self, url: str) -> str:
        """Download a hosted image URL into a data URI."""
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as err:
            raise AITransformError(f"Failed to fetch generated image {url}: {err}") from err
        mime = response.headers.get("Content-Type", "image/png").split(";")[0]
        return ImageRepository.to_data_uri(response.content, mime)
