from insight_flow.contracts.payloads import (
    ContextRetrievedPayload,
    FiltersExtractedPayload,
    MessageReceived,
    PreprocessedPayload,
    ResponseGeneratedPayload,
    utc_now_iso,
)

GENERATION_ERROR_RESPONSE = (
    "I apologize, but I encountered an error while generating a response. "
    "Please try again later."
)


class FallbackEmitter:
    """Degraded-but-well-formed stage outputs used when stage logic fails."""

    @staticmethod
    def preprocess(payload: MessageReceived) -> PreprocessedPayload:
        """Continue with the original, unmodified message."""
        return PreprocessedPayload(
            original_message=payload.message,
            processed_message=payload.message,
            timestamp=payload.timestamp or utc_now_iso(),
        )

    @staticmethod
    def extract_filters(payload: PreprocessedPayload) -> FiltersExtractedPayload:
        """No filters; the preprocessed query is searched as-is."""
        return FiltersExtractedPayload(
            **payload.model_dump(),
            date_filters=None,
            metadata_filters=None,
        )

    @staticmethod
    def retrieve(payload: FiltersExtractedPayload) -> ContextRetrievedPayload:
        """Continue without context."""
        return ContextRetrievedPayload(**payload.model_dump(), context=[])

    @staticmethod
    def generate(payload: ContextRetrievedPayload, error: Exception) -> ResponseGeneratedPayload:
        """Fixed apology; the failure is recorded on the payload."""
        return ResponseGeneratedPayload(
            **payload.model_dump(),
            response=GENERATION_ERROR_RESPONSE,
            error=str(error) or type(error).__name__,
        )
