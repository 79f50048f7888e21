"""FusionService: orchestrates one emoji fusion request."""
from typing import TYPE_CHECKING

from emoji_fusion.core.errors import FusionInProgress, UsageLimitReached
from emoji_fusion.core.logging import setup_logging
from emoji_fusion.models.fusion import FusionRequest, FusionResponse
from emoji_fusion.models.usage import UsageStatus
from emoji_fusion.services.prompt import DEFAULT_MAX_IMAGE_BYTES, build_prompt

if TYPE_CHECKING:
    from emoji_fusion.services.fusion_client import FusionClient
    from emoji_fusion.services.usage import UsageGate

logger = setup_logging("fusion")


class FusionService:
    """Orchestrates a single fusion.

    Responsibilities:
    1. Allow one pending fusion per client id
    2. Ask UsageGate whether the client still has fusions left today
    3. Validate inputs and render the prompt (no remote call on bad input)
    4. Delegate to FusionClient for the single generation call
    5. Count the fusion against the daily limit only when it succeeded
    """

    def __init__(
        self,
        fusion_client: "FusionClient",
        usage_gate: "UsageGate",
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    ) -> None:
        self.fusion_client = fusion_client
        self.usage_gate = usage_gate
        self.max_image_bytes = max_image_bytes
        self._in_flight: set[str] = set()

    async def fuse(self, request: FusionRequest, client_id: str) -> FusionResponse:
        """Run the fusion workflow for one client.

        Args:
            request: The two items to fuse.
            client_id: Caller identity the usage gate is keyed by.

        Returns:
            FusionResponse with the image data URI and updated usage.

        Raises:
            FusionInProgress: Another fusion for this client is pending.
            UsageLimitReached: The daily limit is used up.
            InputValidationError: One or both items are invalid.
            FusionFailed: The remote call failed (subtype tells why).
        """
        if client_id in self._in_flight:
            raise FusionInProgress("A fusion is already in progress for this client")
        self._in_flight.add(client_id)
        try:
            # --- 1. Usage gate ---
            status = self.usage_gate.check_and_maybe_reject(client_id)
            if not status.allowed:
                raise UsageLimitReached(status.limit)

            # --- 2. Validate and render ---
            prompt = build_prompt(request.item1, request.item2, self.max_image_bytes)

            # --- 3. Remote call ---
            result = await self.fusion_client.fuse(prompt)

            # --- 4. Count only successful fusions ---
            usage = self.usage_gate.record_success(client_id)
        finally:
            self._in_flight.discard(client_id)

        logger.info(
            "fusion: client=%s kinds=%s+%s usage=%d/%d",
            client_id,
            request.item1.kind.value,
            request.item2.kind.value,
            usage.count,
            usage.limit,
        )
        return FusionResponse(
            encoded_image=result.encoded_image,
            mime_type=result.mime_type,
            text=result.text,
            usage=usage,
        )

    def usage_status(self, client_id: str) -> UsageStatus:
        """Return today's usage for the client without consuming a fusion."""
        return self.usage_gate.check_and_maybe_reject(client_id)

    def grant_bonus(self, client_id: str) -> UsageStatus:
        """Return one fusion to the client's daily allowance."""
        status = self.usage_gate.grant_bonus(client_id)
        logger.info("bonus granted: client=%s usage=%d/%d", client_id, status.count, status.limit)
        return status
