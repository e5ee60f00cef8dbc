"""Streaming chat completions."""

from collections.abc import Iterator

from openai import OpenAI, OpenAIError

from .config import config
from .exceptions import CompletionError

logger = config.get_logger(__name__)


class CompletionStreamer:
    """Streams chat-completion fragments from OpenAI as they arrive."""

    def __init__(  # noqa: PLR0913
        self,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        client: OpenAI | None = None,
    ) -> None:
        """Initialize CompletionStreamer.

        Args:
            api_key: OpenAI API key. If None, reads from OPENAI_API_KEY.
            model: Chat model name. If None, uses config.CHAT_MODEL.
            temperature: Sampling temperature. If None, uses config.CHAT_TEMPERATURE.
            max_tokens: Completion token cap. If None, uses config.CHAT_MAX_TOKENS.
            client: Pre-built OpenAI-compatible client. Takes precedence over
                api_key.
        """
        if client is None:
            default_headers = config.get_api_headers()
            client = OpenAI(
                api_key=api_key or config.get_openai_api_key(),
                base_url=config.OPENAI_BASE_URL,
                default_headers=default_headers or None,
            )
        self.client = client
        self.model = model or config.CHAT_MODEL
        self.temperature = (
            temperature if temperature is not None else config.CHAT_TEMPERATURE
        )
        self.max_tokens = max_tokens if max_tokens is not None else config.CHAT_MAX_TOKENS

    def stream_completion(self, system_prompt: str, user_message: str) -> Iterator[str]:
        """Open one streaming request and yield text fragments.

        The request is only sent once iteration starts. Closing the iterator
        early closes the underlying HTTP stream.

        Yields:
            Non-empty content fragments in arrival order.

        Raises:
            CompletionError: If the request or the stream fails.
        """
        try:
            stream = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                stream=True,
            )
        except OpenAIError as e:
            logger.exception("Error opening completion stream")
            msg = f"Completion request failed: {e}"
            raise CompletionError(msg) from e

        try:
            for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except OpenAIError as e:
            logger.exception("Completion stream interrupted")
            msg = f"Completion stream failed: {e}"
            raise CompletionError(msg) from e
        finally:
            stream.close()
