"""Batch runner — execute endpoints one at a time through the relay and score them."""

import json
import logging
from collections.abc import Callable

from pydantic import BaseModel

from api_tester.errors import ApiTesterError
from api_tester.models import Endpoint, ExecutionResult, ValidationRule
from api_tester.relay import RelayClient, RelayRequest
from api_tester.validation import default_status_rule, evaluate

logger = logging.getLogger(__name__)


class BatchSummary(BaseModel):
    succeeded: int = 0
    total: int = 0
    validations_passed: int = 0
    validations_total: int = 0

    def __str__(self) -> str:
        return (
            f"{self.succeeded}/{self.total} requests succeeded. "
            f"{self.validations_passed}/{self.validations_total} validations passed."
        )


def build_request(endpoint: Endpoint) -> RelayRequest:
    """Relay request for ``endpoint``; a malformed body is dropped with a warning."""
    body = None
    if endpoint.accepts_body and endpoint.body and endpoint.body.strip():
        try:
            body = json.loads(endpoint.body)
        except json.JSONDecodeError as e:
            logger.warning("Body of %s %s is not valid JSON (%s); sending without a body", endpoint.method, endpoint.url, e.msg)
    return RelayRequest(url=endpoint.url, method=endpoint.method, headers=endpoint.headers, body=body)


def execute(endpoint: Endpoint, relay: RelayClient, rules: list[ValidationRule] | None = None) -> ExecutionResult:
    """Execute one endpoint and evaluate ``rules`` (default: the endpoint's own) against the response."""
    rules = endpoint.validations if rules is None else rules
    try:
        response = relay.forward(build_request(endpoint))
    except ApiTesterError as e:
        logger.error("Execution of %s %s failed: %s", endpoint.method, endpoint.url, e)
        return ExecutionResult(endpoint=endpoint, status="failed", error=str(e))

    return ExecutionResult(
        endpoint=endpoint,
        status="success",
        response=response,
        validation_results=evaluate(response, rules) if rules else [],
    )


def run_batch(
    endpoints: list[Endpoint],
    relay: RelayClient,
    *,
    default_validation: bool = True,
    on_progress: Callable[[int, int], None] | None = None,
    should_continue: Callable[[], bool] | None = None,
) -> list[ExecutionResult]:
    """Execute ``endpoints`` strictly in order, one at a time.

    ``on_progress(current, total)`` is called after each endpoint completes.
    ``should_continue()`` is consulted before each endpoint; returning False
    stops the batch and the results gathered so far are returned.
    """
    total = len(endpoints)
    results: list[ExecutionResult] = []
    for current, endpoint in enumerate(endpoints, start=1):
        if should_continue is not None and not should_continue():
            logger.info("Batch cancelled after %d of %d endpoints", len(results), total)
            break
        rules = endpoint.validations
        if not rules and default_validation:
            rules = [default_status_rule(endpoint.id)]
        results.append(execute(endpoint, relay, rules))
        if on_progress is not None:
            on_progress(current, total)
    return results


def summarize(results: list[ExecutionResult]) -> BatchSummary:
    return BatchSummary(
        succeeded=sum(1 for r in results if r.succeeded),
        total=len(results),
        validations_passed=sum(1 for r in results for v in r.validation_results if v.result == "pass"),
        validations_total=sum(len(r.validation_results) for r in results),
    )
