"""
Seed keyword generation with Claude.

One constrained prompt, sent as the system prompt, asking for at most 10
comma-separated consumer seed keywords for a niche / sub-niche / business
model. The comma list is parsed downstream by the opportunity finder.

Required env var:
    ANTHROPIC_API_KEY
"""

import logging
from typing import Optional

import anthropic

from utils.errors import ConfigurationError, ProviderRequestError

logger = logging.getLogger(__name__)

VENDOR = "Anthropic"
DEFAULT_MODEL = "claude-haiku-4-5-20251001"
DEFAULT_TEMPERATURE = 0.7

# Anthropic requires at least one user turn; the instructions live in the system prompt.
USER_TRIGGER = "Return the keyword list now."

BUSINESS_MODEL_RULES = """INTERNAL ADAPTATION RULE (never mention the business model or this rule in output):
• corporate website → professional, institutional, credible terms that companies search
• affiliate marketing → high-conversion product/category terms perfect for reviews/comparisons
• infopreneur → specific, concrete problems or desired transformations that make people ready to pay for a course/coaching/ebook – NEVER vague emotional states alone (forbidden: "confidence", "stress", "motivation" – allowed only with concrete context: "public speaking", "impostor syndrome", "handling rejection")
• ecommerce → exact product types or category names perfect as H1 on PLP/collection pages
• ads website → highest possible search volume terms (even slightly broader) to maximize Adsense RPM and traffic
• website with subscription → recurring problems or aspirations that justify paying monthly/yearly"""


def _has_sub_niche(sub_niche: Optional[str]) -> bool:
    return bool(sub_niche and sub_niche.strip() and sub_niche.strip().lower() != "none")


def build_keyword_prompt(
    niche: str,
    business_model: str,
    language_name: str,
    sub_niche: Optional[str] = None,
) -> str:
    """Build the seed keyword prompt. Output contract: ≤10 comma-separated 1–3 word keywords."""
    has_sub = _has_sub_niche(sub_niche)
    topic = f"{niche} and {sub_niche.strip()}" if has_sub else niche

    lines = [
        f"Generate 10 seed keywords in {language_name} for the following topic:",
        "",
        f"Business Context: You are helping someone who works in {business_model} "
        f"discover profitable niche opportunities related to {topic}.",
        "",
        "Conditions:",
        "• Each seed must be neutral and concise (1–3 words).",
        '• Do NOT include search intent modifiers ("how to", "best", "buy", "free", "review", etc.).',
        "• Keywords must not describe the business model itself but reflect real opportunities "
        "in this field (products, tools, services, or trends).",
        "• Avoid repeating the same root word more than twice.",
        "• Order them by relevance, most relevant first.",
        "• Return only a plain list in UTF-8, no numbering or explanations, "
        "each keyword separated by a comma (,)",
        "",
        "Generate exactly 10 high-value consumer seed keywords.",
        f"NICHE: {niche}",
    ]
    if has_sub:
        lines.append(f"SUB-NICHE: {sub_niche.strip()}")
    lines += [
        f"LANGUAGE: {language_name}",
        f"BUSINESS MODEL: {business_model} (never reveal or mention this field anywhere)",
        "",
    ]
    if not has_sub:
        lines += [
            'SUB-NICHE is empty, blank, "none", or not provided → ignore it and generate seeds '
            "exclusively for the NICHE as the target niche.",
            "",
        ]
    lines += [
        "CRITICAL CONSUMER FOCUS: Keywords must be exactly what everyday end consumers type "
        "when they have a problem or desire in this niche.",
        "",
        BUSINESS_MODEL_RULES,
        "",
        "Rules – absolute zero tolerance:",
        "• 1–3 words maximum",
        "• Only real terms consumers actually search today in the target language",
        "• NO search-intent modifiers whatsoever (how, best, top, buy, price, review, near me, "
        "cheap, free, vs, guide, tutorial, etc.)",
        "• Forbidden generic words unless part of a real consumer term: software, app, tool, "
        "platform, service, solution, system, product, strategy, management, marketing, "
        "consulting, training",
        "• Ingredients/technical names: FORBIDDEN if only known by professionals. ALLOWED only "
        f"if everyday consumers in {language_name} genuinely search them to buy a finished product",
        "• Never repeat the exact same root unless variants have clearly different volume/intent",
        "• Do not invent terms",
        "• Prioritize the highest real monetization potential for the selected business model",
        "• The first 5 MUST be the absolute biggest money keywords for this business model",
        "• Every keyword must be usable as-is in DataForSEO, Ahrefs, Semrush, Moz or "
        "Google Keyword Planner",
        "• If you cannot find 10 perfect keywords, return fewer than 10 rather than lowering quality",
        "• Never return more than 10 keywords",
        "",
        "Output format – exactly this, nothing else:",
        "keyword1, keyword2, keyword3, keyword4, keyword5, keyword6, keyword7, keyword8, keyword9, keyword10",
    ]
    return "\n".join(lines)


class KeywordGenerator:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = 60.0,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        if client is None:
            if not api_key:
                raise ConfigurationError("ANTHROPIC_API_KEY is required for keyword generation")
            # The opportunity finder does not retry provider calls
            client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.client = client
        self.model = model
        self.temperature = temperature

    async def create_completion(
        self,
        system: str,
        temperature: Optional[float] = None,
        max_tokens: int = 512,
    ) -> dict:
        """
        Single-shot completion driven entirely by the system prompt.

        Returns:
            dict: text, total_tokens, model
        """
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=self.temperature if temperature is None else temperature,
                system=system,
                messages=[{"role": "user", "content": USER_TRIGGER}],
            )
        except anthropic.APIError as e:
            logger.error(f"Anthropic completion failed: {e}")
            status = getattr(e, "status_code", None)
            raise ProviderRequestError(VENDOR, "messages.create", str(e), status_code=status) from e

        text = "".join(
            block.text for block in (response.content or [])
            if getattr(block, "type", "text") == "text"
        ).strip()
        usage = getattr(response, "usage", None)
        total_tokens = (
            (getattr(usage, "input_tokens", 0) or 0) + (getattr(usage, "output_tokens", 0) or 0)
            if usage else 0
        )
        return {"text": text, "total_tokens": total_tokens, "model": self.model}

    async def generate_keywords(
        self,
        niche: str,
        business_model: str,
        language_name: str,
        language_code: str,
        sub_niche: Optional[str] = None,
    ) -> dict:
        """
        Ask Claude for ≤10 comma-separated seed keywords.

        Returns:
            dict: text (raw comma list), total_tokens, model
        """
        system = build_keyword_prompt(
            niche=niche,
            business_model=business_model,
            language_name=language_name,
            sub_niche=sub_niche,
        )
        logger.info(f"Generating seed keywords for niche={niche!r} language={language_code}")
        return await self.create_completion(system)
