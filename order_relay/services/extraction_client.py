from typing import Any

from openai import OpenAI

from order_relay.core.config import Settings
from order_relay.logging_config import logger
from order_relay.services.image_loader import EncodedImage

ORDER_EXTRACTION_PROMPT = (
    "Extract the following values from this order: order ID, order date (using ISO 8601 format), "
    "customer name, customer phone number, order item list with item name, quantity and price, "
    "subtotal amount, delivery fees, discount and total. I need these values in JSON format."
)


class ExtractionError(RuntimeError):
    pass


class ExtractionClient:
    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        max_tokens: int,
        prompt: str = ORDER_EXTRACTION_PROMPT,
        client: Any = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.prompt = prompt
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExtractionClient":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            max_tokens=settings.openai_max_tokens,
        )

    def _get_client(self) -> Any:
        if self._client is None:
            if not self.api_key:
                raise ExtractionError("OPENAI_API_KEY missing, cannot call the extraction service.")
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def build_messages(self, image: EncodedImage) -> list[dict[str, Any]]:
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": self.prompt},
                    {"type": "image_url", "image_url": {"url": image.data_uri}},
                ],
            }
        ]

    def extract(self, image: EncodedImage) -> str:
        client = self._get_client()
        logger.info(
            "Extraction OpenAI call model=%s mime_type=%s image_base64_chars=%s max_tokens=%s",
            self.model,
            image.mime_type,
            len(image.data),
            self.max_tokens,
        )
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(image),
                max_tokens=self.max_tokens,
            )
            content = response.choices[0].message.content
        except Exception as exc:  # noqa: BLE001
            logger.exception("Extraction OpenAI call failed (%s)", exc.__class__.__name__)
            raise ExtractionError(f"{exc.__class__.__name__}: {exc}") from exc

        reply = content or ""
        logger.info("Extraction OpenAI reply model=%s reply_chars=%s", self.model, len(reply))
        return reply
