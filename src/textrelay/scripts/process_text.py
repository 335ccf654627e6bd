"""CLI helper that runs a text operation through the provider orchestrator."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Mapping, Sequence

from ..ai.ai_types import AvailabilityProbe, OperationKind, OperationRequest, ProviderTier
from ..ai.backends import aclose_backends, build_backends
from ..ai.backends.openai_compatible import OpenAICompatibleBackend
from ..ai.errors import TextRelayError
from ..ai.orchestration import TextOrchestrator
from ..services.settings import Settings, SettingsStore, redact_secret
from ..utils.logging import setup_logging

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        operation = OperationKind.parse(args.operation)
        extra_params = _parse_pairs(args.param, flag="--param")
        capabilities = _parse_pairs(args.capability, flag="--capability")
    except ValueError as exc:
        parser.error(str(exc))

    settings = SettingsStore(args.settings).load(overrides=_settings_overrides(args))
    level = logging.DEBUG if (args.verbose or settings.debug_logging) else logging.WARNING
    setup_logging(level, log_dir=args.log_dir, console=args.verbose)

    if args.check_local:
        return asyncio.run(_check_local(settings))

    text = _load_text(args.text, args.file)
    if not text.strip():
        print("No input text provided.", file=sys.stderr)
        return EXIT_USAGE

    params = settings.operation_params(operation)
    params.update(extra_params)
    request = OperationRequest(
        text=text,
        operation=operation,
        operation_params=params,
        user_prompt=args.prompt,
    )
    probe = AvailabilityProbe.from_mapping(capabilities)
    LOGGER.debug(
        "Running %s with gemini key %s and local endpoint %s",
        operation.value,
        redact_secret(settings.gemini_api_key) or "<unset>",
        settings.local_base_url if settings.local_enabled else "<disabled>",
    )

    try:
        return asyncio.run(_run(request, settings, probe, plan_only=args.plan_only, progress=args.progress))
    except TextRelayError as exc:
        print(f"error: {exc.user_message}", file=sys.stderr)
        return EXIT_FAILURE
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="textrelay-process",
        description="Summarize, translate, validate or rewrite text with the best available AI provider.",
    )
    parser.add_argument(
        "--operation",
        "-o",
        default=OperationKind.SUMMARIZE.value,
        help="Operation to run: summarize, translate, validate, rewrite or custom_prompt.",
    )
    parser.add_argument("--file", type=Path, help="File containing the text. Reads stdin when omitted and --text not provided.")
    parser.add_argument("--text", help="Inline text to process. Overrides --file when provided.")
    parser.add_argument("--prompt", help="Instruction for custom_prompt operations.")
    parser.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Operation option such as length=short or target_language=de. Repeatable.",
    )
    parser.add_argument(
        "--capability",
        action="append",
        default=[],
        metavar="NAME=STATUS",
        help="On-device availability, e.g. summarizer=ready. Repeatable.",
    )
    parser.add_argument(
        "--tier",
        choices=[tier.value for tier in ProviderTier],
        help="Preferred provider tier; overrides the stored setting.",
    )
    parser.add_argument("--cloud-first", action="store_true", default=None, help="Prefer the managed cloud API.")
    parser.add_argument("--settings", type=Path, help="Path to an alternate settings.json file.")
    parser.add_argument("--log-dir", type=Path, help="Directory for the rotating log file.")
    parser.add_argument("--plan-only", action="store_true", help="Print the chosen tier and chunk plan, then exit.")
    parser.add_argument("--check-local", action="store_true", help="Check that the local endpoint answers, then exit.")
    parser.add_argument("--progress", action="store_true", help="Report chunk progress on stderr.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output to stderr.")
    return parser


async def _run(
    request: OperationRequest,
    settings: Settings,
    probe: AvailabilityProbe,
    *,
    plan_only: bool,
    progress: bool,
) -> int:
    config = settings.provider_config()
    backends = build_backends(
        config,
        gemini_base_url=settings.gemini_base_url,
        request_timeout=settings.request_timeout,
        local_request_timeout=settings.local_request_timeout,
        debug_logging=settings.debug_logging,
    )
    orchestrator = TextOrchestrator(backends, profiles=settings.tier_profiles())
    try:
        if plan_only:
            tier, plan = orchestrator.plan(request, config, probe)
            print(f"tier: {tier.value}")
            print(f"chunks: {len(plan)} (size {plan.chunk_size}, overlap {plan.overlap})")
            for chunk in plan.chunks:
                print(f"  [{chunk.index + 1}] {chunk.start_offset}-{chunk.end_offset} ({chunk.length} chars)")
            return EXIT_OK

        result = await orchestrator.process(request, config, probe, _report_progress if progress else None)
        print(result.text)
        LOGGER.debug("Completed via %s: %s", result.provider_used.value, result.metadata)
        return EXIT_OK
    finally:
        await aclose_backends(backends)


async def _check_local(settings: Settings) -> int:
    if not (settings.local_base_url and settings.local_model):
        print("The local endpoint is not configured (local_base_url and local_model are required).", file=sys.stderr)
        return EXIT_USAGE
    backend = OpenAICompatibleBackend.from_config(
        settings.local_base_url,
        settings.local_model,
        api_key=settings.local_api_key,
        request_timeout=settings.local_request_timeout,
    )
    try:
        reachable = await backend.check_connection()
    finally:
        await backend.aclose()
    if reachable:
        print(f"Local endpoint {settings.local_base_url} is reachable (model: {settings.local_model}).")
        return EXIT_OK
    print(f"Local endpoint {settings.local_base_url} is not reachable.", file=sys.stderr)
    return EXIT_FAILURE


def _report_progress(percent: int, message: str) -> None:
    print(f"[{percent:3d}%] {message}", file=sys.stderr)


def _parse_pairs(values: Sequence[str], *, flag: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"{flag} expects KEY=VALUE, got {item!r}")
        pairs[key.strip()] = value.strip()
    return pairs


def _settings_overrides(args: argparse.Namespace) -> Mapping[str, object]:
    return {"preferred_tier": args.tier, "cloud_first": args.cloud_first}


def _load_text(inline: str | None, path: Path | None) -> str:
    if inline:
        return inline
    if path:
        return path.read_text(encoding="utf-8")
    return sys.stdin.read()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
