from datetime import datetime
from typing import Dict, Iterable, List, Optional
import logging

from ..models import BreachStatus, PortfolioBreach, utcnow

logger = logging.getLogger(__name__)


def is_resolved(status: str) -> bool:
    return status != BreachStatus.PENDING


def resolution_time(status: str, resolved_at: Optional[datetime], now: Optional[datetime] = None) -> Optional[datetime]:
    """Return the resolvedAt value a breach should carry once it has the given status.

    resolvedAt is stamped the first time a breach leaves Pending and is left alone
    after that; moving back to Pending clears it.
    """
    if not is_resolved(status):
        return None
    if resolved_at is not None:
        return resolved_at
    return now or utcnow()


def set_status(breach: PortfolioBreach, new_status: str, now: Optional[datetime] = None) -> PortfolioBreach:
    """Return a copy of ``breach`` moved to ``new_status``."""
    if new_status not in BreachStatus.RECOGNIZED:
        logger.warning(f"Breach {breach.id} set to unrecognized status {new_status!r}")

    resolved_at = resolution_time(new_status, breach.resolvedAt, now)
    if new_status != breach.status:
        logger.info(f"Breach {breach.id}: {breach.status} -> {new_status}")

    return breach.model_copy(update={"status": new_status, "resolvedAt": resolved_at})


def requires_external_redirect(status: str) -> bool:
    # The UI opens the external portfolio system for this decision
    return status == BreachStatus.ACCEPT_AND_CHANGE


def summarize(breaches: Iterable[PortfolioBreach]) -> Dict[str, int]:
    breaches = list(breaches)
    pending = sum(1 for b in breaches if not is_resolved(b.status))
    return {
        "total": len(breaches),
        "pendingCount": pending,
        "resolvedCount": len(breaches) - pending,
    }


def filter_breaches(
    breaches: Iterable[PortfolioBreach],
    status: Optional[str] = None,
    search: Optional[str] = None,
    portfolio_names: Optional[Dict[str, str]] = None,
    field_names: Optional[Dict[str, str]] = None,
) -> List[PortfolioBreach]:
    """Filter breaches by status (case-insensitive, "all" matches everything) and
    by a search term matched against portfolio name, monitoring field name and
    breach condition."""
    portfolio_names = portfolio_names or {}
    field_names = field_names or {}
    wanted_status = status.lower() if status and status.lower() != "all" else None
    term = search.lower() if search else ""

    matches = []
    for breach in breaches:
        if wanted_status and breach.status.lower() != wanted_status:
            continue
        if term:
            haystack = (
                portfolio_names.get(breach.portfolioId, "").lower(),
                field_names.get(breach.monitoringFieldId, "").lower(),
                breach.breachCondition.lower(),
            )
            if not any(term in text for text in haystack):
                continue
        matches.append(breach)
    return matches
