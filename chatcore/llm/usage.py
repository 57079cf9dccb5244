"""Post-generation accounting: output tokens, duration, usage records."""

from __future__ import annotations

import logging
import time
from typing import Any

from chatcore.llm.errors import StructuredResponseError
from chatcore.llm.types import CompletionStats, GenerationOptions, UsageRecord

logger = logging.getLogger(__name__)


def report_completion(
    options: GenerationOptions,
    text: str,
    started: float,
    structured_content: Any = None,
    parse_error: StructuredResponseError | None = None,
) -> CompletionStats:
    """
    Count output tokens and notify the usage sink and completion callback.

    Runs on every exit path of a generation, so callback failures are logged
    rather than raised over the original outcome.
    """
    output_tokens = options.tokenizer.count_text(text) if options.tokenizer and text else 0
    stats = CompletionStats(
        output_tokens=output_tokens,
        duration=time.monotonic() - started,
        structured_content=structured_content,
        parse_error=parse_error,
    )

    if options.tracking is not None and options.usage_sink is not None:
        record = UsageRecord(
            source=options.tracking.source,
            model=options.tracking.model,
            input_tokens=options.tracking.input_tokens,
            output_tokens=output_tokens,
            duration=stats.duration,
            context=options.tracking.context,
        )
        try:
            options.usage_sink(record)
        except Exception:
            logger.exception("Usage sink failed for %s", options.tracking.source)

    if options.on_completion is not None:
        try:
            options.on_completion(stats)
        except Exception:
            logger.exception("Completion callback failed")

    logger.info(
        "Generation finished: output_tokens=%d duration=%.2fs parse_error=%s",
        output_tokens,
        stats.duration,
        parse_error is not None,
    )
    return stats
