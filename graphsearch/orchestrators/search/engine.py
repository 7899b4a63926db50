"""Tiered execution engine: rich -> text -> filter, degrading on capability rejection.

The engine is an explicit state machine over TIER_ORDER. Tiers run one at a
time; the first structurally valid reply is authoritative and later tiers
are never tried. A failure moves to the next tier only when the failing
tier's ``is_recoverable`` predicate accepts it; anything else, and any
failure of the last tier, propagates unchanged.
"""

import asyncio
import time
from collections.abc import Mapping
from dataclasses import dataclass, field

from graphsearch.contracts.graph_search_v1 import SearchResponseV1
from graphsearch.core.logger import logger
from graphsearch.observability import traceable
from graphsearch.orchestrators.search.cancellation import run_cancellable
from graphsearch.orchestrators.search.capabilities import EntityCapabilityRegistry
from graphsearch.orchestrators.search.constants import (
    TIER_ORDER,
    EngineState,
    ExecutionTier,
    TierPolicy,
)
from graphsearch.orchestrators.search.errors import (
    CapabilityRejection,
    SearchCancelledError,
    SearchError,
)
from graphsearch.orchestrators.search.interface import ApiClient
from graphsearch.orchestrators.search.query_builder import SynthesizedQuery
from graphsearch.orchestrators.search.tiers import (
    SearchPlan,
    SearchTier,
    TierRequest,
    default_tiers,
)


@dataclass
class TierAttempt:
    tier: ExecutionTier
    path: str
    duration_ms: float
    error: str | None = None
    recoverable: bool = False


@dataclass
class ExecutionOutcome:
    """The authoritative tier's reply plus the attempts that led to it."""

    tier: ExecutionTier
    request: TierRequest
    response: SearchResponseV1
    attempts: list[TierAttempt] = field(default_factory=list)


def _state_for(tier: ExecutionTier) -> EngineState:
    return EngineState(tier.value)


def _next_state(state: EngineState) -> EngineState:
    tier = ExecutionTier(state.value)
    idx = TIER_ORDER.index(tier)
    if idx + 1 < len(TIER_ORDER):
        return _state_for(TIER_ORDER[idx + 1])
    return EngineState.FAILED


def is_complex_query(query: SynthesizedQuery, policy: TierPolicy) -> bool:
    if query.boolean_operator_count > policy.max_boolean_operators:
        return True
    if policy.date_range_is_complex and query.has_date_range:
        return True
    return query.field_predicate_count > policy.max_field_predicates


class TieredExecutionEngine:
    """Runs one logical query through the tier chain."""

    def __init__(
        self,
        client: ApiClient,
        registry: EntityCapabilityRegistry,
        policy: TierPolicy | None = None,
        tiers: Mapping[ExecutionTier, SearchTier] | None = None,
    ) -> None:
        self._client = client
        self._policy = policy or TierPolicy.from_config()
        self._tiers = dict(tiers) if tiers is not None else default_tiers(registry)

    @property
    def policy(self) -> TierPolicy:
        return self._policy

    def starting_tier(self, plan: SearchPlan) -> ExecutionTier:
        """Rich for relevance-ranked or complex queries, and whenever a keyword
        request could not carry the whole query or the offset; text otherwise."""
        if plan.rank_by_relevance or is_complex_query(plan.query, self._policy):
            return ExecutionTier.RICH
        if not self._tiers[ExecutionTier.TEXT].applies(plan):
            return ExecutionTier.RICH
        return ExecutionTier.TEXT

    @traceable(name="search_tier_execution", run_type="chain")
    async def execute(
        self,
        plan: SearchPlan,
        access_token: str,
        cancel: asyncio.Event | None = None,
    ) -> ExecutionOutcome:
        attempts: list[TierAttempt] = []
        state = _state_for(self.starting_tier(plan))
        last_error: CapabilityRejection | None = None

        while state not in (EngineState.DONE, EngineState.FAILED):
            tier_name = ExecutionTier(state.value)
            tier = self._tiers[tier_name]
            if not tier.applies(plan):
                logger.debug("Engine: skipping %s tier (required inputs absent)", tier_name)
                state = _next_state(state)
                continue

            request = tier.build(plan)
            headers = {**request.headers, "Authorization": f"Bearer {access_token}"}
            started = logger.tier_attempt(str(tier_name), request.method, request.path)
            try:
                raw = await run_cancellable(
                    self._client.invoke(
                        request.method,
                        request.path,
                        body=request.body,
                        query=request.query,
                        headers=headers,
                    ),
                    cancel,
                )
                response = tier.parse(raw, plan)
            except SearchCancelledError:
                logger.tier_result(str(tier_name), started, False, error_reason="cancelled")
                raise
            except SearchError as e:
                recoverable = tier.is_recoverable(e)
                logger.tier_result(
                    str(tier_name), started, False, error_reason=str(e), recoverable=recoverable
                )
                attempts.append(
                    TierAttempt(
                        tier=tier_name,
                        path=request.path,
                        duration_ms=round((time.monotonic() - started) * 1000, 1),
                        error=str(e),
                        recoverable=recoverable,
                    )
                )
                if not recoverable:
                    raise
                last_error = CapabilityRejection(str(tier_name), e)
                state = _next_state(state)
                continue

            logger.tier_result(str(tier_name), started, True)
            attempts.append(
                TierAttempt(
                    tier=tier_name,
                    path=request.path,
                    duration_ms=round((time.monotonic() - started) * 1000, 1),
                )
            )
            return ExecutionOutcome(
                tier=tier_name, request=request, response=response, attempts=attempts
            )

        # Only reachable when every remaining tier was skipped or degraded past;
        # the last rejection surfaces as the backend reported it.
        if last_error is not None:
            raise last_error.cause
        raise SearchError("No execution tier applies to this query")
