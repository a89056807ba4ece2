"""``wish-sdk`` command line: discover, generate and run prompts."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from wish_sdk.clients import LiveClient, PromptApi
from wish_sdk.config import Settings
from wish_sdk.core.codegen import (
    DEFAULT_OUTPUT_DIR,
    filter_prompts,
    parse_slug_list,
    write_prompt_modules,
)
from wish_sdk.utils.errors import WishSdkError
from wish_sdk.utils.logging import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_API_ERROR = 1
EXIT_USAGE = 2


def _parse_vars(pairs: list[str]) -> dict[str, str]:
    variables = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise ValueError(f"Invalid --var {pair!r}, expected NAME=VALUE")
        variables[name] = value
    return variables


async def _list_prompts(client: PromptApi, args: argparse.Namespace) -> int:
    schema = await client.fetch_schema(api_url=args.api_url)
    print(f"Available prompts ({len(schema.prompts)}):\n")
    for prompt in schema.prompts:
        print(f"  {prompt.slug}")
        print(f"    Name: {prompt.name}")
        if prompt.description:
            print(f"    Description: {prompt.description}")
        if prompt.required_names:
            print(f"    Required: {', '.join(prompt.required_names)}")
        if prompt.optional_names:
            print(f"    Optional: {', '.join(prompt.optional_names)}")
        print()

    if schema.prompts:
        print("To generate a wrapper for a prompt, run:")
        print(f"  wish-sdk gen-prompt {schema.prompts[0].slug}")
    return EXIT_OK


async def _gen_prompts(client: PromptApi, args: argparse.Namespace) -> int:
    schema = await client.fetch_schema(api_url=args.api_url)
    only = parse_slug_list(args.only)
    except_ = parse_slug_list(args.except_)
    selected = filter_prompts(schema.prompts, only=only, except_=except_)

    if not selected:
        print(
            f"No prompts matched your filters. Found {len(schema.prompts)} prompt(s); "
            f"--only: {only} --except: {except_}",
            file=sys.stderr,
        )
        return EXIT_USAGE

    written = write_prompt_modules(selected, Path(args.output_dir))
    print(f"Generated {len(written)} prompt wrapper(s) in {args.output_dir}/")
    for prompt in selected:
        print(f"  - {prompt.slug}")
    return EXIT_OK


async def _gen_prompt(client: PromptApi, args: argparse.Namespace) -> int:
    prompt = await client.fetch_prompt_schema(args.slug, api_url=args.api_url)
    (path,) = write_prompt_modules([prompt], Path(args.output_dir))
    print(f"Generated {path}")
    return EXIT_OK


async def _invoke(client: PromptApi, args: argparse.Namespace) -> int:
    response = await client.invoke(
        args.slug,
        context_variables=_parse_vars(args.var),
        user_prompt=args.user_prompt,
        api_url=args.api_url,
    )
    print(response)
    return EXIT_OK


async def _stream(client: PromptApi, args: argparse.Namespace) -> int:
    def on_chunk(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    handle = client.stream(
        args.slug,
        context_variables=_parse_vars(args.var),
        user_prompt=args.user_prompt,
        on_chunk=on_chunk,
        api_url=args.api_url,
    )
    result = await handle
    sys.stdout.write("\n")
    result.unwrap()
    return EXIT_OK


COMMANDS = {
    "list-prompts": _list_prompts,
    "gen-prompts": _gen_prompts,
    "gen-prompt": _gen_prompt,
    "invoke": _invoke,
    "stream": _stream,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wish-sdk",
        description="Discover, generate wrappers for, and run BetterPrompt prompts.",
    )
    parser.add_argument("--config-dir", type=Path, default=None, help="Directory holding config.yaml")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--api-url", default=None, help="Override the configured API URL")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list-prompts", parents=[common], help="List published prompts")

    gen_all = sub.add_parser("gen-prompts", parents=[common], help="Generate wrappers for prompts")
    gen_all.add_argument("--output-dir", default=str(DEFAULT_OUTPUT_DIR))
    gen_all.add_argument("--only", default=None, help="Comma-separated slugs to generate")
    gen_all.add_argument("--except", dest="except_", default=None, help="Comma-separated slugs to skip")

    gen_one = sub.add_parser("gen-prompt", parents=[common], help="Generate a wrapper for one prompt")
    gen_one.add_argument("slug")
    gen_one.add_argument("--output-dir", default=str(DEFAULT_OUTPUT_DIR))

    for name, help_text in (("invoke", "Invoke a prompt"), ("stream", "Stream a prompt response")):
        run = sub.add_parser(name, parents=[common], help=help_text)
        run.add_argument("slug")
        run.add_argument("--var", action="append", default=[], metavar="NAME=VALUE")
        run.add_argument("--user-prompt", default=None)

    return parser


async def run_command(client: PromptApi, args: argparse.Namespace) -> int:
    """Run a parsed command, mapping failures to exit codes."""
    logger.debug(f"Running command {args.command}")
    try:
        return await COMMANDS[args.command](client, args)
    except WishSdkError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_API_ERROR
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_USAGE


def main(argv: list[str] | None = None, client: PromptApi | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = Settings(config_dir=args.config_dir)
    configure_logging(
        level=args.log_level or settings.logging.level,
        format=settings.logging.format,
    )

    if client is None:
        client = LiveClient(settings)
    return asyncio.run(run_command(client, args))


if __name__ == "__main__":
    sys.exit(main())
