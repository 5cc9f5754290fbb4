"""
run_gateway_check.py: smoke check of the AI generation gateway against live providers.

Reads the same environment / .env file as the service:
  1. Builds the provider chain (fails fast if nothing is configured)
  2. Probes every provider and prints its status
  3. Optionally runs one generation through the fallback chain

Usage:
    python run_gateway_check.py
    python run_gateway_check.py "Summarize the survey feedback in one sentence"
    python run_gateway_check.py --timeout-ms 15000 "Hello"
"""

import argparse
import asyncio
import logging
import sys

from aigateway.core.config import settings
from aigateway.gateway.errors import ConfigurationError, ExhaustedFailure
from aigateway.gateway.gateway import build_gateway
from aigateway.gateway.types import GenerationRequest

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s: %(message)s",
)
logger = logging.getLogger("gateway_check")


async def main(prompt: str | None, timeout_ms: int | None) -> int:
    try:
        gateway = build_gateway(settings)
    except ConfigurationError as e:
        logger.error("Gateway not configured: %s", e)
        return 2

    print("\n=== Provider status ===")
    statuses = await gateway.get_status()
    for s in statuses:
        mark = "OK  " if s.reachable else "FAIL"
        latency = f"{s.latency_ms} ms" if s.latency_ms is not None else "-"
        print(f"  [{mark}] {s.id:<24} {latency:>8}  {s.error_kind or ''} {s.last_error or ''}".rstrip())

    if not prompt:
        return 0 if any(s.reachable for s in statuses) else 1

    print("\n=== Generation ===")
    request = GenerationRequest(
        prompt=prompt,
        temperature=settings.ai_temperature,
        top_p=settings.ai_top_p,
        max_tokens=settings.ai_max_tokens,
    )
    try:
        result = await gateway.generate(request, timeout_ms=timeout_ms)
    except ExhaustedFailure as e:
        logger.error("%s", e)
        for err in e.errors:
            print(f"  - {err.kind}: {err}")
        return 1

    print(f"  provider: {result.provider_id}")
    print(f"  latency:  {result.latency_ms} ms (retries: {result.retry_count})")
    print(f"\n{result.text}\n")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Check AI provider health and optionally generate once.")
    parser.add_argument("prompt", nargs="?", help="prompt to run through the fallback chain")
    parser.add_argument("--timeout-ms", type=int, default=None, help="end-to-end budget for the generation")
    args = parser.parse_args()

    sys.exit(asyncio.run(main(args.prompt, args.timeout_ms)))
