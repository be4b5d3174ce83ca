"""
Command-line entry point: send one prompt to LM Studio and print the reply.

The reply is streamed to the terminal as it is generated unless
``--no-stream`` is given.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog
import yaml
from pydantic import ValidationError

from .config import Configuration, QueryOptions
from .llm.client import LMStudioClient
from .llm.models import QueryFailure, QuerySuccess
from .llm.streaming.sinks import ConsoleSink
from .logging_utils import configure_logging, operation_context
from .prompts import PromptsService

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lmstudio-bridge",
        description="Query a local LM Studio server",
    )
    parser.add_argument("prompt", nargs="?", help="Prompt text (default: stdin)")
    parser.add_argument("--config", help="Path to a config.yaml file")
    parser.add_argument("--model", help="Model id (default: configured model)")
    parser.add_argument("--system", help="System prompt")
    parser.add_argument(
        "--default-system",
        action="store_true",
        help="Use the configured default system prompt",
    )
    parser.add_argument("--article", metavar="TERM", help="Generate an article about TERM")
    parser.add_argument("--max-tokens", type=int)
    parser.add_argument("--temperature", type=float)
    parser.add_argument("--top-p", type=float)
    parser.add_argument(
        "--no-stream", action="store_true", help="Wait for the complete reply"
    )
    parser.add_argument(
        "--list-models", action="store_true", help="List available models and exit"
    )
    return parser


def describe_invalid(error: Exception) -> str:
    """Collapse a configuration or validation error to one line."""
    if isinstance(error, ValidationError):
        return "; ".join(
            f"{'.'.join(str(part) for part in detail['loc'])}: {detail['msg']}"
            for detail in error.errors()
        )
    return " ".join(str(error).split())


async def run(args: argparse.Namespace) -> int:
    """Run one CLI invocation and return the process exit code."""
    try:
        config = Configuration(args.config)
        logging_config = config.get_logging_config()
        settings = config.get_lmstudio_settings()
        prompt_settings = config.get_prompt_settings()
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Configuration error: {describe_invalid(e)}", file=sys.stderr)
        return 1

    configure_logging(logging_config.level)
    prompts = PromptsService(prompt_settings)

    async with LMStudioClient(
        settings, log_fragments=logging_config.log_fragments
    ) as client:
        if args.list_models:
            models = await client.list_models()
            for model_id in models:
                print(model_id)
            return 0 if models else 1

        if args.article:
            prompt = prompts.article_prompt(args.article)
        else:
            prompt = args.prompt if args.prompt is not None else sys.stdin.read()
        if not prompt.strip():
            print(prompts.enter_question_notice, file=sys.stderr)
            return 2

        system_prompt = args.system
        if system_prompt is None and args.default_system:
            system_prompt = prompts.default_system_prompt

        try:
            options = QueryOptions(
                model=args.model,
                system_prompt=system_prompt,
                max_tokens=args.max_tokens,
                temperature=args.temperature,
                top_p=args.top_p,
                stream=False if args.no_stream else None,
            )
        except ValidationError as e:
            print(f"Invalid option: {describe_invalid(e)}", file=sys.stderr)
            return 2

        # Complete replies are printed once below, not through the console sink
        streaming = settings.sampling.stream if options.stream is None else options.stream
        async with operation_context(
            "cli_query", context={"model": args.model or "default"}
        ):
            result = await client.query(
                prompt, options, sink=ConsoleSink() if streaming else None
            )

    match result:
        case QuerySuccess(text=text):
            print("" if streaming else text)
            return 0
        case QueryFailure(message=message):
            if streaming:
                print()
            print(message, file=sys.stderr)
            return 1


def main() -> None:
    """Console script entry point."""
    args = build_parser().parse_args()
    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
