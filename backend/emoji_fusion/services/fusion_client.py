"""Fusion Client: one Gemini image-generation call per fusion request."""
import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from emoji_fusion.core.errors import (
    FusionFailed,
    MalformedResponse,
    NetworkError,
    SafetyBlocked,
    UpstreamError,
)
from emoji_fusion.core.logging import setup_logging
from emoji_fusion.models.fusion import EncodedImage, FusionResult, PromptPart, RenderedPrompt

logger = setup_logging("fusion_client")

DEFAULT_MODEL = "gemini-2.0-flash-preview-image-generation"

# Finish reasons that mean the model withheld output on policy grounds.
SAFETY_FINISH_REASONS = frozenset(
    {
        "SAFETY",
        "PROHIBITED_CONTENT",
        "BLOCKLIST",
        "SPII",
        "IMAGE_SAFETY",
        "IMAGE_PROHIBITED_CONTENT",
    }
)


@dataclass(frozen=True)
class FusionConfig:
    """Generation parameters shared by every fusion request."""

    safety_settings: tuple[tuple[types.HarmCategory, types.HarmBlockThreshold], ...]
    response_modalities: tuple[str, ...] = ("TEXT", "IMAGE")

    def to_generate_config(self, timeout_ms: Optional[int] = None) -> types.GenerateContentConfig:
        http_options = types.HttpOptions(timeout=timeout_ms) if timeout_ms else None
        return types.GenerateContentConfig(
            response_modalities=list(self.response_modalities),
            safety_settings=[
                types.SafetySetting(category=category, threshold=threshold)
                for category, threshold in self.safety_settings
            ],
            http_options=http_options,
        )


FUSION_CONFIG = FusionConfig(
    safety_settings=(
        (types.HarmCategory.HARM_CATEGORY_HATE_SPEECH, types.HarmBlockThreshold.BLOCK_ONLY_HIGH),
        (types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT, types.HarmBlockThreshold.BLOCK_NONE),
        (types.HarmCategory.HARM_CATEGORY_HARASSMENT, types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE),
        (types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT, types.HarmBlockThreshold.BLOCK_LOW_AND_ABOVE),
    ),
)


def _enum_name(value: Any) -> str:
    return getattr(value, "name", None) or str(value)


def _to_part(part: PromptPart) -> types.Part:
    if part.image is not None:
        return types.Part(
            inline_data=types.Blob(data=part.image.to_bytes(), mime_type=part.image.mime_type)
        )
    return types.Part(text=part.text or "")


def build_contents(prompt: RenderedPrompt) -> list[types.Content]:
    """Convert a rendered prompt into the role-tagged message list."""
    return [types.Content(role="user", parts=[_to_part(p) for p in prompt.parts])]


def extract_image(response: types.GenerateContentResponse) -> FusionResult:
    """Pull the first inline image out of a model response.

    Raises:
        SafetyBlocked: The prompt or the candidate was blocked by safety filters.
        MalformedResponse: No candidates, or no image part in the first one.
    """
    feedback = response.prompt_feedback
    if feedback is not None and feedback.block_reason:
        reason = _enum_name(feedback.block_reason)
        if reason != "BLOCKED_REASON_UNSPECIFIED":
            raise SafetyBlocked(reason)

    candidates = response.candidates
    if not candidates:
        raise MalformedResponse("No candidates returned by Gemini Image API")

    candidate = candidates[0]
    parts = candidate.content.parts if candidate.content and candidate.content.parts else []
    text = "".join(p.text for p in parts if p.text) or None
    for part in parts:
        if part.inline_data is not None and part.inline_data.data:
            image = EncodedImage.from_bytes(
                bytes(part.inline_data.data), part.inline_data.mime_type or "image/png"
            )
            return FusionResult(encoded_image=image.data_uri, mime_type=image.mime_type, text=text)

    finish_reason = _enum_name(candidate.finish_reason) if candidate.finish_reason else ""
    if finish_reason in SAFETY_FINISH_REASONS:
        raise SafetyBlocked(finish_reason)
    raise MalformedResponse("No image data returned by Gemini Image API")


class FusionClient:
    """Sends rendered fusion prompts to a Gemini image model on Vertex AI.

    Each `fuse` call makes exactly one remote request and never retries.
    Every failure is surfaced as a `FusionFailed` subtype. Cancelling the
    awaiting task aborts the in-flight request.
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        location: str = "global",
        model: str = DEFAULT_MODEL,
        timeout_ms: Optional[int] = None,
        client: Optional[genai.Client] = None,
    ) -> None:
        self.project_id = project_id
        self.location = location
        self.model = model
        self.timeout_ms = timeout_ms
        self._client = client

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(
                vertexai=True,
                project=self.project_id,
                location=self.location,
            )
        return self._client

    async def fuse(
        self, prompt: RenderedPrompt, config: FusionConfig = FUSION_CONFIG
    ) -> FusionResult:
        """Generate the fused emoji image for a rendered prompt.

        Args:
            prompt: Validated instruction from the Request Builder.
            config: Safety thresholds and response modalities.

        Returns:
            FusionResult holding the image as a data URI.

        Raises:
            NetworkError: Transport failure.
            UpstreamError: Non-2xx response from the API.
            SafetyBlocked: The model refused for safety reasons.
            MalformedResponse: The response carried no image.
            FusionFailed: Any other failure during the call.
        """
        logger.debug("Fusion request pending (model=%s)", self.model)
        try:
            response = await self._get_client().aio.models.generate_content(
                model=self.model,
                contents=build_contents(prompt),
                config=config.to_generate_config(self.timeout_ms),
            )
            result = extract_image(response)
        except asyncio.CancelledError:
            logger.info("Fusion request cancelled by caller")
            raise
        except FusionFailed as exc:
            self._log_failure(exc)
            raise
        except genai_errors.APIError as exc:
            failure: FusionFailed = UpstreamError(
                f"Gemini API returned {exc.code}: {exc.message}", status_code=exc.code
            )
            self._log_failure(failure, exc)
            raise failure from exc
        except (httpx.TransportError, OSError) as exc:
            failure = NetworkError(f"Could not reach Gemini API: {exc}")
            self._log_failure(failure, exc)
            raise failure from exc
        except Exception as exc:
            failure = FusionFailed(f"Fusion request failed: {type(exc).__name__}")
            self._log_failure(failure, exc)
            raise failure from exc

        logger.info("Fusion succeeded (mime_type=%s)", result.mime_type)
        return result

    def _log_failure(self, failure: FusionFailed, cause: Optional[BaseException] = None) -> None:
        logger.error(
            "Fusion failed: %s: %s",
            failure.code,
            failure,
            extra={
                "component": "FusionClient",
                "error_type": type(cause or failure).__name__,
            },
        )
