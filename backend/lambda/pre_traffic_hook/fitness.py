"""fitness.py - Run the gate's checks in order and fold them into one report."""

from __future__ import annotations

import logging
from typing import Sequence

from checks import FitnessCheck
from gate_models import FitnessReport, GateContext

logger = logging.getLogger()


async def run_checks(checks: Sequence[FitnessCheck], ctx: GateContext) -> FitnessReport:
    """Evaluate ``checks`` one after another into ``ctx.report``.

    A forced Failed does not stop later checks; they still add to the score.
    Exceptions from a check propagate and abandon the remaining checks.
    """
    report = ctx.report
    for check in checks:
        outcome = await check.evaluate(ctx)
        report.record(check.name, outcome)
        logger.info(
            "[INFO] %s scored %d (fitness=%d, status=%s)",
            check.name,
            outcome.score,
            report.score,
            report.status.value,
        )
    return report
