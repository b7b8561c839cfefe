"""Chat completion client used for answer generation."""
import httpx
from typing import List, Dict, Optional
import structlog

from docsearch import config
from docsearch.errors import UpstreamError, upstream_errors

logger = structlog.get_logger()

SYSTEM_PROMPT = (
    "You are a helpful assistant. Use the provided context to answer questions. "
    "If the answer is not in the context, say you do not know."
)

CONTEXT_SEPARATOR = "\n---\n"


class GenerationClient:
    """Async client for an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the generation client.

        Args:
            base_url: API base URL (defaults to config.LLM_BASE_URL)
            api_key: Bearer token (defaults to config.LLM_API_KEY)
            model: Chat model (defaults to config.CHAT_MODEL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, mainly for tests
        """
        self.base_url = base_url or config.LLM_BASE_URL
        self.api_key = api_key or config.LLM_API_KEY
        self.model = model or config.CHAT_MODEL
        self.timeout = timeout or config.UPSTREAM_TIMEOUT
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    async def chat(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to the client's model)
            temperature: Sampling temperature (0.0-2.0)

        Returns:
            Content of the first choice

        Raises:
            UpstreamTimeout: If the service does not answer in time
            UpstreamError: On connection, HTTP or empty-response errors
        """
        model = model or self.model

        payload = {
            "model": model,
            "messages": messages,
        }

        if temperature is not None:
            payload["temperature"] = temperature

        logger.info("llm_chat_request", model=model, message_count=len(messages))

        with upstream_errors("generation"):
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()

        choices = data.get("choices") or []
        content = ""
        if choices:
            content = (choices[0].get("message") or {}).get("content") or ""

        if not content:
            logger.error("llm_empty_response", model=model)
            raise UpstreamError("Empty response from language model", {"service": "generation"})

        logger.info("llm_chat_response", model=model, response_length=len(content))

        return content

    async def generate(self, query: str, passages: List[str]) -> str:
        """Answer a question from context passages only.

        An empty passage list is still sent; the system prompt makes the
        model say it does not know.
        """
        context = CONTEXT_SEPARATOR.join(passages)
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"Context: {context}\n\nQuestion: {query}"},
        ]
        return await self.chat(messages)
