from typing import Protocol

import httpx


class CompletionError(Exception):
    """Raised when the completion provider fails or answers unexpectedly."""


class CompletionClient(Protocol):
    async def complete(self, *, system: str, prompt: str, temperature: float) -> str:
        """Return the raw model text, expected to hold one JSON object."""
        ...


class OpenAICompletionClient:
    """Chat completions over an OpenAI-compatible REST endpoint.

    The HTTP client is owned by the caller; this class never closes it.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1",
    ) -> None:
        self._http = http
        self._api_key = api_key
        self.model = model
        self._url = f"{base_url.rstrip('/')}/chat/completions"

    async def complete(self, *, system: str, prompt: str, temperature: float) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": temperature,
        }

        try:
            response = await self._http.post(
                self._url,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            # Surface the provider's own error message
            try:
                detail = exc.response.json()
                msg = detail.get("error", {}).get("message", str(exc))
            except (ValueError, AttributeError):
                msg = str(exc)
            raise CompletionError(
                f"Completion API error ({exc.response.status_code}): {msg}"
            ) from exc
        except httpx.HTTPError as exc:
            raise CompletionError(f"Completion request failed: {exc}") from exc

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise CompletionError(
                f"Unexpected response from completion API: {exc!r}"
            ) from exc

        return content or ""
