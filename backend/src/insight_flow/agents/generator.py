"""Context-conditioned answer generation."""

from insight_flow.logging_config import get_logger
from insight_flow.services.llm import ChatCompletionClient

logger = get_logger(__name__)

# Sampling policy for answers; not configurable per request.
GENERATION_TEMPERATURE = 0.7

NO_CONTENT_RESPONSE = "I apologize, but I couldn't generate a response. Please try again."

SYSTEM_PROMPT_TEMPLATE = """You are an AI assistant that helps users with their questions. Below is context from previous conversations that may be relevant to the current question. Use it to inform your response, but respond directly to the user's current query.

{context}

IMPORTANT GUIDELINES:
1. If the context is relevant to the query, use it to inform your answer.
2. If the context is not relevant, answer the query without mentioning the irrelevant context.
3. Do not mention that you are using previous conversations unless directly asked.
4. Keep a helpful, informative, and friendly tone.
5. If you are unsure or the question is outside your knowledge, be honest about your limitations."""


def build_system_prompt(context_text: str) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(context=context_text)


class ResponseGenerator:
    """One completion call per answer."""

    def __init__(self, llm: ChatCompletionClient, model: str | None = None):
        self.llm = llm
        self.model = model

    async def generate(self, query: str, context_text: str) -> str:
        """
        Generate an answer for query grounded in context_text.

        Returns NO_CONTENT_RESPONSE when the provider answers without
        usable content. Provider errors propagate to the Generate stage.
        """
        answer = await self.llm.complete(
            build_system_prompt(context_text),
            query,
            temperature=GENERATION_TEMPERATURE,
            model=self.model,
        )
        if answer is None:
            logger.warning("generation_no_content")
            return NO_CONTENT_RESPONSE
        return answer
