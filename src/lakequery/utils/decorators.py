"""Tracing and retry decorators used by the HTTP client and the driver."""

import functools
import time
from typing import Any, Callable, Dict, Optional, Tuple, Type, TypeVar

from opentelemetry.trace import Span, SpanKind, Status, StatusCode

from lakequery.logging import get_logger
from lakequery.telemetry import get_tracer

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")


def _set_attributes(span: Span, attributes: Optional[Dict[str, Any]]) -> None:
    for key, value in (attributes or {}).items():
        if value is not None:
            span.set_attribute(key, value)


def _record_failure(span: Span, exc: Exception) -> None:
    span.record_exception(exc)
    span.set_status(Status(StatusCode.ERROR, str(exc)))
    span.set_attribute("error.type", type(exc).__name__)
    error_code = getattr(exc, "error_code", None)
    if error_code is not None:
        span.set_attribute("lakequery.error_code", getattr(error_code, "value", str(error_code)))


def traced(
    span_name: Optional[str] = None,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Optional[Dict[str, Any]] = None,
    attribute_getter: Optional[Callable[..., Optional[Dict[str, Any]]]] = None,
    result_attributes: Optional[Callable[[Any], Optional[Dict[str, Any]]]] = None,
) -> Callable[[F], F]:
    """Instrument a function with an OpenTelemetry span.

    Args:
        span_name: Optional explicit span name. Defaults to module-qualified function name.
        kind: Span kind, defaults to INTERNAL.
        attributes: Static span attributes to attach.
        attribute_getter: Called with the function's arguments; returns extra attributes.
        result_attributes: Called with the return value; returns attributes
            known only after the call (job id, job state, row counts).

    Failures are recorded on the span with ``error.type`` and, for lakequery
    errors, ``lakequery.error_code``; the exception is re-raised unchanged.
    """

    def decorator(func: F) -> F:
        name = span_name or f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            tracer = get_tracer(func.__module__)
            with tracer.start_as_current_span(name, kind=kind) as span:
                _set_attributes(span, attributes)
                if attribute_getter:
                    try:
                        _set_attributes(span, attribute_getter(*args, **kwargs))
                    except Exception as exc:  # pragma: no cover
                        logger.warning("trace attribute getter failed: %s", exc)

                try:
                    result = func(*args, **kwargs)
                except Exception as exc:
                    _record_failure(span, exc)
                    raise

                if result_attributes:
                    _set_attributes(span, result_attributes(result))
                return result

        return wrapper  # type: ignore[return-value]

    return decorator


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    retry_on: Optional[Tuple[Type[Exception], ...]] = None,
    retry_condition: Optional[Callable[[Exception], bool]] = None,
    min_delay_for: Optional[Callable[[Exception], Optional[float]]] = None,
    sleep: Callable[[float], Any] = time.sleep,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Re-invoke a transient-failing call with exponentially growing pauses.

    The n-th pause is ``initial_delay * exponential_base ** n`` capped at
    ``max_delay``, so a call runs at most ``max_retries + 1`` times.

    Args:
        retry_on: Exception types eligible for retry; None means any.
        retry_condition: Further predicate on the exception. It is asked
            before each pause and again after it, so a pause cut short by
            cancellation ends the retries without another attempt.
        min_delay_for: Lower bound for the next pause derived from the
            failure, such as a server ``Retry-After``. Still capped.
        sleep: Injected for tests.

    Example:
        >>> @retry_with_backoff(max_retries=5, retry_on=(TransportError, ServerError))
        ... def job_status(job_id):
        ...     return session.get(f"{base_url}/job/{job_id}")
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            pause = initial_delay
            attempts = max_retries + 1

            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as exc:
                    eligible = retry_on is None or isinstance(exc, retry_on)
                    if eligible and retry_condition is not None:
                        eligible = retry_condition(exc)
                    if not eligible:
                        raise
                    if attempt == attempts:
                        logger.error(
                            "All retry attempts failed",
                            extra={"function": func.__name__, "attempts": attempts},
                        )
                        raise

                    wait = pause
                    floor = min_delay_for(exc) if min_delay_for else None
                    if floor:
                        wait = min(max(wait, floor), max_delay)
                    logger.warning(
                        "Transient failure, retrying",
                        extra={
                            "function": func.__name__,
                            "attempt": attempt,
                            "delay": wait,
                            "error": str(exc),
                        },
                    )
                    sleep(wait)
                    if retry_condition is not None and not retry_condition(exc):
                        raise
                    pause = min(pause * exponential_base, max_delay)

            raise AssertionError("unreachable")  # pragma: no cover

        return wrapper

    return decorator

