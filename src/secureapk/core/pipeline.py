"""Check pipeline: fan out checks over one extraction root, fan in by registry order."""

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from secureapk.core.checks import CHECK_REGISTRY, BaseCheck, CheckContext
from secureapk.exceptions import DetectorError
from secureapk.models.analysis import CategoryResult

logger = logging.getLogger(__name__)


def run_check(check: BaseCheck, context: CheckContext) -> CategoryResult:
    """Run one check, converting any failure into a clean passed result."""
    try:
        result = check.detect(context)
    except Exception as e:
        error = DetectorError(check.category, e)
        logger.error("%s", error, exc_info=logger.isEnabledFor(logging.DEBUG))
        return CategoryResult.passed(
            check.category,
            details=f"{check.label} analysis could not complete: {e}",
        )

    if result.category != check.category:
        logger.warning(
            "Check %r returned result for %r; relabelling",
            check.category,
            result.category,
        )
        result = result.model_copy(update={"category": check.category})
    return result


def run_checks(
    context: CheckContext,
    checks: Sequence[BaseCheck] = CHECK_REGISTRY,
    max_workers: int = 8,
) -> list[CategoryResult]:
    """Run every check concurrently and return results in registry order.

    Args:
        context: Shared read-only context for the job.
        checks: Ordered checks to run.
        max_workers: Thread pool size; 1 runs the checks sequentially.

    Returns:
        One CategoryResult per check, in the order of checks.
    """
    if not checks:
        return []

    if max_workers <= 1:
        return [run_check(check, context) for check in checks]

    with ThreadPoolExecutor(
        max_workers=min(max_workers, len(checks)),
        thread_name_prefix="secureapk-check",
    ) as pool:
        futures = [pool.submit(run_check, check, context) for check in checks]
        results = [future.result() for future in futures]

    logger.info(
        "Ran %d checks (%d with issues)",
        len(results),
        sum(1 for r in results if r.issue_count),
    )
    return results
