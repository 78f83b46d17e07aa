# [Core: Orchestration]
"""
Refinement Orchestrator — the caller that ties a request to a strategy.

Controls one refinement run:
  1. Resolve and validate the mode's budget configuration
  2. Static analysis of the input (always, no oracle calls)
  3. Dynamic analysis (if the mode enables it and the budget covers it
     plus the strategy's first call; falls back on failure)
  4. Run exactly one strategy: the self-refine loop or the progressive
     enhancement pipeline

One CallLedger spans the whole run, so max_oracle_calls caps every oracle
call the run makes, dynamic analysis included.

Configuration violations are the only error a caller sees. Oracle problems
are absorbed by the strategies and show up in the returned trace.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from refiner.config import settings
from refiner.models.schemas import (
    RefineRequest,
    RefinementOutcome,
    Strategy,
)
from refiner.services.oracle import OracleGateway
from refiner.tools.dynamic_analysis import DynamicAnalyzer, synthesize_analyses
from refiner.tools.static_analysis import analyze_prompt
from tracks.progressive.enhancer import ProgressiveEnhancer
from tracks.self_refine.refiner import SelfRefiner
from tracks.shared.budget import CallLedger
from tracks.shared.modes import BudgetConfiguration, resolve_config, validate_config

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """The requested mode/overrides do not form a valid budget."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


def choose_strategy(config: BudgetConfiguration, requested: Optional[Strategy] = None) -> Strategy:
    """The requested strategy, else self-refine when the mode enables self-critique."""
    if requested is not None:
        return requested
    if config.enable_self_refine and config.feature("self_critique"):
        return Strategy.SELF_REFINE
    return Strategy.PROGRESSIVE


class RefinementOrchestrator:
    """
    Usage:
        orchestrator = RefinementOrchestrator()
        outcome = await orchestrator.run(RefineRequest(text="write a function"))
    """

    def __init__(self, gateway: Optional[OracleGateway] = None):
        self.gateway = gateway or OracleGateway()
        self.dynamic_analyzer = DynamicAnalyzer(self.gateway)

    def resolve(self, request: RefineRequest) -> BudgetConfiguration:
        """
        Raises:
            ConfigurationError: unknown mode/field or out-of-range values.
        """
        mode = request.mode or settings.default_mode
        try:
            config = resolve_config(mode, request.overrides)
        except ValueError as e:
            raise ConfigurationError([str(e)]) from e

        errors = validate_config(config)
        if errors:
            raise ConfigurationError(errors)
        return config

    async def run(self, request: RefineRequest) -> RefinementOutcome:
        config = self.resolve(request)
        strategy = choose_strategy(config, request.strategy)
        logger.info(
            f"Refining {len(request.text)} chars with {strategy.value} "
            f"(mode={config.mode}, max calls={config.max_oracle_calls})"
        )

        static = analyze_prompt(request.text)
        ledger = CallLedger(track_id=strategy.value, max_calls=config.max_oracle_calls)

        dynamic = None
        synthesized = None
        if config.feature("dynamic_analysis"):
            # Analysis only pays off if the strategy can still make a call after it
            if ledger.can_afford(2):
                dynamic = await self.dynamic_analyzer.analyze_or_fallback(request.text, ledger)
                synthesized = synthesize_analyses(static, dynamic)
            else:
                logger.info(
                    f"Skipping dynamic analysis: {ledger.remaining} oracle call(s) "
                    f"left for the {strategy.value} strategy"
                )

        outcome = RefinementOutcome(
            strategy=strategy,
            mode=config.mode,
            config=config.to_dict(),
            static_analysis=static,
            dynamic_analysis=dynamic,
            synthesized=synthesized,
            original_text=request.text,
            final_text=request.text,
        )

        if strategy == Strategy.SELF_REFINE:
            result = await SelfRefiner(config, self.gateway).refine(
                request.text, baseline=static, ledger=ledger
            )
            outcome.self_refine = result
            outcome.final_text = result.final_text
        else:
            result = await ProgressiveEnhancer(config, self.gateway).enhance(
                request.text, static_analysis=static, dynamic_analysis=dynamic, ledger=ledger
            )
            outcome.progressive = result
            outcome.final_text = result.final_text

        return outcome
