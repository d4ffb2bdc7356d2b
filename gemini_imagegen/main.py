from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

from .config import AppConfig, load_app_config
from .credentials import resolve_api_key
from .images import guess_image_mime_from_path, save_first_image
from .images.normalize import truncate_text
from .providers import (
    ProviderAdapter,
    build_provider_adapter,
    read_provider_adapter_config,
)
from .providers.schema import ImageGenerateInput, InputImage
from .selection import Chooser, list_image_models, prompt_model_choice, select_model
from .storage import ConfigStateStore
from .storage.keys import LAST_OUTPUT_KEY
from .utils.errors import ImageGenErrorCode, ImageGenException
from .utils.log import configure_logging, logger

DEFAULT_OUTPUT = "output.png"
PROMPT_PREVIEW_CHARS = 60
DESCRIPTION_PREVIEW_CHARS = 70

USAGE_EXAMPLES = """\
examples:
  gemini-image -p "prompt" -o output.png
  gemini-image -i input.jpg -p "prompt" -o output.png
  gemini-image -L -p "change style" -o output.png  # uses last image
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gemini-image",
        description="Generate or edit images with the Gemini API.",
        epilog=USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-i", dest="input", default="", help="Input image for editing")
    parser.add_argument(
        "-L",
        dest="use_last",
        action="store_true",
        help="Use last generated image as input",
    )
    parser.add_argument("-p", dest="prompt", default="", help="Prompt text")
    parser.add_argument("-f", dest="prompt_file", default="", help="Read prompt from file")
    parser.add_argument(
        "-o", dest="output", default=DEFAULT_OUTPUT, help="Output filename"
    )
    parser.add_argument(
        "-m", dest="model", default="", help="Model to use (see -l for list)"
    )
    parser.add_argument(
        "-l",
        dest="list_models",
        action="store_true",
        help="List available image models",
    )
    parser.add_argument(
        "-reset",
        "--reset",
        dest="reset",
        action="store_true",
        help="Reset saved model and last output",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    return parser


def _progress(message: str) -> None:
    print(message, file=sys.stderr)


def _read_prompt(args: argparse.Namespace) -> str:
    if not args.prompt_file:
        return args.prompt
    try:
        return Path(args.prompt_file).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ImageGenException(
            code=ImageGenErrorCode.FILE_IO_ERROR,
            message=f"Cannot read prompt file: {exc}",
            detail={"path": args.prompt_file},
        ) from exc


def _read_input_image(path: str) -> InputImage:
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise ImageGenException(
            code=ImageGenErrorCode.FILE_IO_ERROR,
            message=f"Cannot read input image '{path}': {exc}",
            detail={"path": path},
        ) from exc
    return InputImage(data=data, mime=guess_image_mime_from_path(path), path=Path(path))


def _resolve_last_output(store: ConfigStateStore) -> str:
    recorded = store.get_value(LAST_OUTPUT_KEY)
    last_output = store.get_last_output()
    if last_output is None:
        if recorded:
            _progress(f"Warning: last output file no longer exists: {recorded}")
        raise ImageGenException(
            code=ImageGenErrorCode.INVALID_ARGUMENT,
            message="No previous image found. Generate one first.",
            detail={"recorded": recorded},
        )
    _progress(f"Using last output: {last_output}")
    return str(last_output)


def _build_adapter(config: AppConfig, api_key: str, image_model: str = "") -> ProviderAdapter:
    return build_provider_adapter(
        read_provider_adapter_config(
            {
                "provider": "gemini",
                "base_url": config.base_url,
                "api_key": api_key,
                "timeout_sec": config.timeout_sec,
                "image_model": image_model,
            }
        )
    )


async def _print_model_list(adapter: ProviderAdapter) -> None:
    models = await list_image_models(adapter.list_models)
    print("Available image generation models:")
    for model in models:
        print(f"  {model.name}")
        if model.description:
            print(f"    {truncate_text(model.description, DESCRIPTION_PREVIEW_CHARS)}")


async def run(
    args: argparse.Namespace,
    *,
    config: AppConfig,
    chooser: Chooser = prompt_model_choice,
) -> int:
    """按 credentials → model → request → API → output 的顺序执行一次调用。"""
    store = ConfigStateStore(config.config_dir)

    if args.reset:
        store.reset()
        _progress("Config reset. Will prompt for model on next run.")
        return 0

    input_path = args.input
    if args.use_last:
        input_path = _resolve_last_output(store)

    api_key = resolve_api_key()
    adapter = _build_adapter(config, api_key)

    if args.list_models:
        await _print_model_list(adapter)
        return 0

    prompt = _read_prompt(args)
    if not prompt:
        raise ImageGenException(
            code=ImageGenErrorCode.INVALID_ARGUMENT,
            message="Prompt is required (-p or -f).",
            detail={"show_usage": True},
        )

    model = await select_model(
        list_models=adapter.list_models,
        store=store,
        explicit_model=args.model,
        chooser=chooser,
    )
    adapter.image_model = model

    input_image = None
    if input_path:
        input_image = _read_input_image(input_path)
        _progress(f"Input: {input_path}")

    _progress(f"Prompt: {truncate_text(prompt, PROMPT_PREVIEW_CHARS)}")
    _progress(f"Model: {model}")

    response = await adapter.image_generate(
        ImageGenerateInput(prompt=prompt, input_image=input_image)
    )
    result = save_first_image(
        response,
        output_path=args.output,
        store=store,
        on_text=lambda text: _progress(f"Response: {text}"),
    )
    print(result.path)
    return 0


def format_error(exc: ImageGenException) -> str:
    if exc.code == ImageGenErrorCode.NO_IMAGE_IN_RESPONSE:
        return f"{exc.message}\n{exc.body}"
    if exc.code == ImageGenErrorCode.API_ERROR:
        return f"{exc.message}: {exc.body}"
    return exc.message


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose)

    try:
        config = load_app_config()
    except (KeyError, ValueError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(run(args, config=config))
    except ImageGenException as exc:
        if args.verbose:
            logger.exception("gemini-image failed: %s", exc)
        if exc.detail.get("show_usage"):
            parser.print_help(sys.stderr)
        print(format_error(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
