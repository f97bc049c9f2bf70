"""Keyword-rule market category classification.

Compiled regex rules are tried in order and the first match wins. The
generic ``ai-tool`` rule is deliberately last so that an "AI for Shopify
sellers" product lands in ``ec-optimize`` rather than the catch-all AI
bucket.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from tracescout.ingestion.schemas import MarketCategory

logger = logging.getLogger(__name__)


def _build_rules() -> list[tuple[MarketCategory, list[re.Pattern[str]]]]:
    """
    Build and compile the ordered category rules.

    Returns:
        List of (category, compiled patterns) in match priority order.
    """
    rules: list[tuple[MarketCategory, list[str]]] = [
        (MarketCategory.EC_OPTIMIZE, [
            r"\b(e-?commerce|shopify|woocommerce|amazon\s?seller|product\s?listing|checkout"
            r"|cart\s?abandon|dropship|fulfillment|inventory\s?manage|retail\s?tech|payment"
            r"|stripe|pos(?:\s|$)|point[.\s-]of[.\s-]sale|pricing\s?optim|order\s?manage"
            r"|product\s?feed|merchant|storefront)",
        ]),
        (MarketCategory.ANALOG_DX, [
            r"\b(construction|real\s?estate|property\s?manage|restaurant|food\s?service"
            r"|agriculture|farming|healthcare|clinic|dental|salon|barber|hotel|hospitality"
            r"|logistics|warehouse|fleet|field\s?service|manufacturing|factory|crm\s?for"
            r"|digitiz|paper-?less|funeral|wedding)",
        ]),
        (MarketCategory.INFO_GAP_AI, [
            r"\b(no-?code|low-?code|non-?technic|small\s?business|local\s?business"
            r"|ai\s?(for|helps?)\s?(small|non|every)|simpli|automat.*(?:small|sme|smb)"
            r"|beginner|easy.to.use.*ai|accessible)",
        ]),
        (MarketCategory.MARKETPLACE, [
            r"\b(marketplace|two-?sided|matching|freelanc|gig\s?econom|peer.to.peer"
            r"|p2p\s?platform|connect.*(?:buyer|seller|provider|client)|hire\s?(?:a|an)"
            r"|talent\s?platform)",
        ]),
        (MarketCategory.VERTICAL_SAAS, [
            r"\b(legal\s?tech|law\s?firm|accounting|bookkeep|tax\s?(?:software|tool)"
            r"|hr\s?(?:software|tool|platform)|recruit|ats\b|crm\b|erp\b|insurance\s?tech"
            r"|fintech|edtech|proptech|medtech|govtech)",
        ]),
        (MarketCategory.DEVTOOL, [
            r"\b(developer|sdk\b|api\s?(?:gateway|platform|tool)|cli\s?tool|framework|library"
            r"|open.?source|debug|deploy|ci.?cd|devops|monitoring|observ|infrastructure"
            r"|database|orm\b|testing\s?framework|code\s?review|ide\b|terminal|self.?host)",
        ]),
        (MarketCategory.AI_TOOL, [
            r"\b(ai\b|artificial.intellig|machine.learn|llm\b|gpt|chatbot|copilot"
            r"|generat.*(?:text|image|video|code)|prompt|diffusion|neural|deep.learn|nlp\b"
            r"|computer.vision|rag\b|vector\s?(?:db|database|search))",
        ]),
    ]
    return [
        (category, [re.compile(p, re.IGNORECASE) for p in patterns])
        for category, patterns in rules
    ]


CATEGORY_RULES = _build_rules()

_VALID_CATEGORIES = {c.value for c in MarketCategory}


def classify_market_category(
    title: str,
    description: str = "",
    tags: Iterable[str] = (),
    hint: str | None = None,
) -> MarketCategory:
    """
    Assign a market category from title, description and tags.

    Args:
        title: Item title.
        description: Item description.
        tags: Item tags.
        hint: Source-provided category; used only when no rule matches
            and it names a known category.

    Returns:
        The first matching category, the hint, or ``MarketCategory.OTHER``.
    """
    text = f"{title} {description} {' '.join(tags)}".lower()
    for category, patterns in CATEGORY_RULES:
        if any(p.search(text) for p in patterns):
            return category

    if hint:
        normalized = hint.strip().lower()
        if normalized in _VALID_CATEGORIES:
            return MarketCategory(normalized)
        logger.debug("Ignoring unknown category hint %r", hint)

    return MarketCategory.OTHER
