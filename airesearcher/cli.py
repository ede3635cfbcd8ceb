"""Command-line interface for the research service.

Responsibilities:
- Expose user-facing commands for content processing and serving.
- Convert CLI arguments into config/runtime sources and run the service.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

from pathlib import Path
import sys
from typing import Annotated

import typer
import uvicorn

from .api import ResearchServer, create_app
from .cli_rendering import echo_operation_list, exit_with_command_error
from .cli_runtime import load_command_config, resolve_runtime_sources
from .credentials import create_credential_store
from .errors import ResearchServiceError
from .models.datatypes import KNOWN_OPERATIONS, ResearchRequest
from .parsing import normalize_optional_string
from .service_factory import build_rate_limiter, build_research_service
from .telemetry.logger import configure_logging

app = typer.Typer(
    name="airesearcher",
    no_args_is_help=True,
    help="AI Researcher CLI.",
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="YAML config file (environment is used otherwise)."),
]
ApiKeyOption = Annotated[
    str | None,
    typer.Option("--api-key", help="Gemini API key override (prefer env or keyring)."),
]
ModelOption = Annotated[
    str | None,
    typer.Option("--model", help="Model id override."),
]
LogLevelOption = Annotated[
    str,
    typer.Option("--log-level", help="Log level for phase logs on stderr."),
]


def _read_content(content: str | None, file: Path | None) -> str:
    """Return request content from the argument, a file, or stdin."""

    if content is not None and file is not None:
        raise ResearchServiceError(
            "Pass content either as an argument or via `--file`, not both.",
        )
    if content is not None:
        return content
    if file is not None:
        try:
            return file.read_text(encoding="utf-8")
        except OSError as exc:
            raise ResearchServiceError(
                f"Could not read content file `{file}`: {exc}",
                hint="Verify the file exists and is readable.",
            ) from exc
    piped = "" if sys.stdin.isatty() else sys.stdin.read()
    if not piped:
        raise ResearchServiceError(
            "No content provided.",
            hint="Pass content as an argument, via `--file`, or on stdin.",
        )
    return piped


@app.command("process")
def process_command(
    content: Annotated[
        str | None,
        typer.Argument(help="Content to process; read from `--file` or stdin when omitted."),
    ] = None,
    operation: Annotated[
        str,
        typer.Option("--operation", "-o", help="Operation to apply, e.g. `summarize`."),
    ] = "summarize",
    tone: Annotated[
        str | None,
        typer.Option("--tone", help="Tone for the `rewrite` operation."),
    ] = None,
    target_language: Annotated[
        str | None,
        typer.Option("--target-language", help="Target language for `translate`."),
    ] = None,
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="Read content from a UTF-8 text file."),
    ] = None,
    config_file: ConfigOption = None,
    api_key: ApiKeyOption = None,
    model: ModelOption = None,
    log_level: LogLevelOption = "WARNING",
) -> None:
    """Process content with one operation and print the result."""

    try:
        configure_logging(level=log_level)
        request = ResearchRequest(
            content=_read_content(content, file),
            operation=operation,
            tone=normalize_optional_string(tone),
            target_language=normalize_optional_string(target_language),
        )
        config = load_command_config(config_file)
        runtime = config.resolved_runtime(resolve_runtime_sources(api_key, model))
        service = build_research_service(config, runtime)
        response = service.process_content(request)
    except Exception as exc:
        exit_with_command_error("process", exc)

    typer.echo(response.result)


@app.command("operations")
def operations_command() -> None:
    """List known operations."""

    echo_operation_list(KNOWN_OPERATIONS)


@app.command("serve")
def serve_command(
    host: Annotated[
        str | None, typer.Option("--host", help="Bind host (overrides config).")
    ] = None,
    port: Annotated[
        int | None, typer.Option("--port", help="Bind port (overrides config).")
    ] = None,
    config_file: ConfigOption = None,
    api_key: ApiKeyOption = None,
    model: ModelOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Serve the HTTP endpoint with uvicorn."""

    try:
        configure_logging(level=log_level)
        config = load_command_config(config_file)
        runtime = config.resolved_runtime(resolve_runtime_sources(api_key, model))
        rate_limiter = build_rate_limiter(config)
        service = build_research_service(config, runtime, rate_limiter=rate_limiter)
        api = create_app(service, rate_limiter=rate_limiter, model=runtime.model)
    except Exception as exc:
        exit_with_command_error("serve", exc)

    bind_host = host if host is not None else config.host
    bind_port = port if port is not None else config.port
    typer.echo(f"Serving on http://{bind_host}:{bind_port}/api/research/process")
    server = ResearchServer(
        uvicorn.Config(api, host=bind_host, port=bind_port, log_level=log_level.lower()),
        api.state.inflight,
    )
    server.run()


@app.command("credentials")
def credentials_command(
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key with hidden input and store it securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage securely stored CLI credentials."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            ResearchServiceError(
                "`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                "Gemini API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                ResearchServiceError(
                    "No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                ResearchServiceError(
                    f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        removed = credential_store.clear_api_key()
        if removed:
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    has_stored_key = credential_store.get_api_key() is not None
    status = "present" if has_stored_key else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored Gemini API key: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
