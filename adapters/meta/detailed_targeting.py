import asyncio
import re
from typing import List, Optional

import structlog

from adapters.meta.client import MetaClient
from core.models.audience import PASS_THROUGH_PREFIX, MetaInterest

logger = structlog.get_logger(__name__)

PASS_THROUGH_SIZE_LOWER = 1_000_000
PASS_THROUGH_SIZE_UPPER = 5_000_000
PASS_THROUGH_PATH = ["Strategy Builder", "Expert Suggestion"]


def pass_through_interest(name: str) -> MetaInterest:
    """Unvalidated stand-in kept until a live lookup can resolve ``name``."""
    slug = re.sub(r"\s+", "_", name.strip().upper())
    return MetaInterest(
        id=f"{PASS_THROUGH_PREFIX}{slug}",
        name=name.strip(),
        path=PASS_THROUGH_PATH,
        audience_size_lower_bound=PASS_THROUGH_SIZE_LOWER,
        audience_size_upper_bound=PASS_THROUGH_SIZE_UPPER,
        validated=False,
    )


def _dedupe(names: List[str]) -> List[str]:
    seen = set()
    unique = []
    for name in names:
        cleaned = (name or "").strip()
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        unique.append(cleaned)
    return unique


class MetaInterestAdapter:
    """Resolves free-text interest names to Meta ad interest IDs."""

    async def _search(self, client: MetaClient, query: str) -> Optional[MetaInterest]:
        response = await client.get(
            "/search",
            params={"type": "adinterest", "q": query, "limit": 1},
        )
        data = response.get("data", [])
        if not data:
            return None

        item = data[0]
        return MetaInterest(
            id=str(item.get("id")),
            name=item.get("name") or query,
            path=item.get("path") or [],
            audience_size_lower_bound=item.get("audience_size_lower_bound") or 0,
            audience_size_upper_bound=item.get("audience_size_upper_bound") or 0,
        )

    async def validate_interests(
        self, names: List[str], access_token: Optional[str] = None
    ) -> List[MetaInterest]:
        """Return one interest per distinct name, in input order.

        Without a token, or when a lookup fails or finds nothing, the name is
        kept as a pass-through entry.
        """
        unique_names = _dedupe(names)
        if not unique_names:
            return []

        if not access_token:
            logger.info("interest_lookup_skipped", reason="no_access_token", count=len(unique_names))
            return [pass_through_interest(name) for name in unique_names]

        client = MetaClient(access_token)
        results = await asyncio.gather(
            *(self._search(client, name) for name in unique_names),
            return_exceptions=True,
        )

        interests: List[MetaInterest] = []
        for name, result in zip(unique_names, results):
            if isinstance(result, Exception):
                logger.warning(
                    "interest_lookup_failed",
                    interest=name,
                    error=str(result),
                    rate_limited=getattr(result, "is_rate_limited", False),
                )
                interests.append(pass_through_interest(name))
            elif result is None:
                interests.append(pass_through_interest(name))
            else:
                interests.append(result)

        validated = sum(1 for interest in interests if interest.validated)
        logger.info("interests_resolved", requested=len(unique_names), validated=validated)
        return interests


# Module-level singleton - reused across all requests
meta_interest_adapter = MetaInterestAdapter()
