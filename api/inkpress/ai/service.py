"""Text generation collaborator.

Posts ``{"model", "prompt"}`` to the configured endpoint and reads the
``text`` field of the JSON response. The rest of the system treats the
result as opaque text.
"""

import httpx
import structlog

from inkpress.core.errors import ServiceUnavailableError


logger = structlog.get_logger(__name__)


class TextGenerationError(ServiceUnavailableError):
    code = "ai_unavailable"


class TextGenerationService:
    def __init__(
        self,
        api_url: str | None,
        api_key: str | None = None,
        model: str = "gemini-1.5-flash",
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url
        self._api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def is_available(self) -> bool:
        return bool(self.api_url)

    async def generate(self, prompt: str) -> str:
        """Send a prompt and return the generated text.

        Raises:
            TextGenerationError: Not configured, timed out or bad response.
        """
        if not self.api_url:
            raise TextGenerationError("AI service is not configured")

        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(
                    self.api_url,
                    json={"model": self.model, "prompt": prompt},
                    headers=headers,
                )
        except httpx.TimeoutException as e:
            logger.error("ai_request_timeout", error=str(e))
            raise TextGenerationError("AI service timed out") from e
        except httpx.RequestError as e:
            logger.error("ai_request_error", error=str(e))
            raise TextGenerationError("AI service request failed") from e

        if response.status_code != httpx.codes.OK:
            logger.error(
                "ai_request_failed",
                status_code=response.status_code,
                response_text=response.text[:500],
            )
            raise TextGenerationError(f"AI service error: {response.status_code}")

        try:
            text = response.json().get("text")
        except ValueError as e:
            raise TextGenerationError("AI service returned invalid JSON") from e
        if not isinstance(text, str) or not text.strip():
            raise TextGenerationError("AI service returned no text")
        return text.strip()

    async def summarize(self, content: str, max_length: int = 200) -> str:
        prompt = (
            "Please create a concise summary of the following blog post content. "
            f"The summary should be approximately {max_length} characters and "
            f"capture the main points:\n\n{content}\n\nSummary:"
        )
        summary = await self.generate(prompt)
        if len(summary) > max_length:
            summary = summary[: max_length - 3] + "..."
        return summary

    async def comment_reply(
        self, comment: str, post_title: str, tone: str = "friendly"
    ) -> str:
        prompt = (
            f'Generate a {tone} and helpful reply to this comment on the blog post '
            f'titled "{post_title}":\n\nOriginal comment: "{comment}"\n\n'
            "The reply should be respectful, relevant to the comment and post "
            "topic, around 50-150 words, and conversational.\n\nReply:"
        )
        return await self.generate(prompt)

    async def blog_post(
        self, title: str, tone: str = "informative", keywords: list[str] | None = None
    ) -> str:
        keyword_text = f" Include these keywords: {', '.join(keywords)}." if keywords else ""
        prompt = (
            f'Write a comprehensive blog post with the title "{title}". '
            f"The tone should be {tone}.{keyword_text} Structure it with an "
            "introduction, main content with subheadings and a conclusion. "
            "Format the response in Markdown, approximately 800-1200 words."
        )
        return await self.generate(prompt)
