"""`hunkplan config`: provider, model, API key and planner settings in ~/.hunkplan/."""

import os
from contextlib import contextmanager
from dataclasses import fields
from typing import Iterator

import typer

from hunkplan import global_config
from hunkplan.config import (
    API_KEY_ENV_VARS,
    AVAILABLE_MODELS,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    LLMProvider,
)
from hunkplan.plan.settings import PlannerConfig, load_planner_config_from_dict

VALID_PROVIDERS = ", ".join(p.value for p in LLMProvider)

config_app = typer.Typer(
    name="config",
    help="Manage global hunkplan configuration in ~/.hunkplan/",
    add_completion=False,
)


@contextmanager
def _config_errors() -> Iterator[None]:
    """Turn config file failures into an error message and exit code 1."""
    try:
        yield
    except (OSError, global_config.GlobalConfigError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _parse_provider(provider: str) -> LLMProvider:
    try:
        return LLMProvider(provider.lower())
    except ValueError:
        typer.echo(f"Invalid provider: {provider}", err=True)
        typer.echo(f"Valid providers: {VALID_PROVIDERS}")
        raise typer.Exit(1)


def _mask(secret: str) -> str:
    return f"{secret[:8]}...{secret[-4:]}" if len(secret) > 12 else "***"


def _key_status(provider: LLMProvider) -> str:
    env_var = API_KEY_ENV_VARS[provider]
    if os.environ.get(env_var):
        return f"{env_var} (environment)"
    stored = global_config.get_credential(env_var)
    return f"{env_var}: {_mask(stored)}" if stored else f"{env_var}: not set"


def _choose_model(provider: LLMProvider) -> str:
    models = AVAILABLE_MODELS[provider]
    typer.echo(f"Available models for {provider.value}:")
    for number, name in enumerate(models, 1):
        typer.echo(f"  {number}. {name}")

    choice = typer.prompt(f"Select a model (1-{len(models)})", type=int, default=1)
    if not 1 <= choice <= len(models):
        typer.echo("Invalid choice. Aborting.", err=True)
        raise typer.Exit(1)
    return models[choice - 1]


@config_app.command("show")
def config_show() -> None:
    """Print the provider, generation limits, API key status and planner settings."""
    with _config_errors():
        config = global_config.load_global_config()

    if not global_config.is_configured():
        typer.echo("No configuration file found; using defaults.")
        typer.echo("Run 'hunkplan config set-provider <provider>' to choose a provider.")
        typer.echo()

    typer.echo("Current hunkplan configuration (~/.hunkplan/config.yaml):")
    typer.echo()
    for label, key, fallback in (
        ("Provider", "provider", "not set"),
        ("Model", "model", "not set"),
        ("Max Tokens", "max_tokens", DEFAULT_MAX_TOKENS),
        ("Temperature", "temperature", DEFAULT_TEMPERATURE),
    ):
        typer.echo(f"  {label}: {config.get(key, fallback)}")

    try:
        provider = LLMProvider(config.get("provider"))
    except ValueError:
        provider = None
    if provider is not None:
        with _config_errors():
            typer.echo(f"  API Key: {_key_status(provider)}")
    typer.echo()

    typer.echo("  Planner:")
    for key, value in load_planner_config_from_dict(config.get("planner") or {}).to_dict().items():
        typer.echo(f"    {key}: {value}")


@config_app.command("set-key")
def config_set_key(
    provider: str = typer.Argument(..., help=f"Provider name ({VALID_PROVIDERS})"),
) -> None:
    """Store an API key in ~/.hunkplan/credentials (owner-readable only)."""
    llm_provider = _parse_provider(provider)
    api_key = typer.prompt(f"Enter your {llm_provider.value} API key", hide_input=True)

    with _config_errors():
        global_config.save_credential(API_KEY_ENV_VARS[llm_provider], api_key)
    typer.echo(f"✓ API key saved for {llm_provider.value}")


@config_app.command("set-provider")
def config_set_provider(
    provider: str = typer.Argument(..., help=f"Provider name ({VALID_PROVIDERS})"),
    model: str = typer.Option(
        None, "--model", "-m", help="Model name (prompted from the known list when omitted)"
    ),
) -> None:
    """Choose the provider and model that write commit messages."""
    llm_provider = _parse_provider(provider)

    if not model:
        model = _choose_model(llm_provider)
    elif model not in AVAILABLE_MODELS[llm_provider]:
        typer.echo(f"Warning: {model} is not a known {llm_provider.value} model")
        if not typer.confirm("Continue anyway?", default=False):
            raise typer.Exit(0)

    with _config_errors():
        global_config.set_provider_and_model(llm_provider, model)
    typer.echo(f"✓ Provider set to: {llm_provider.value}")
    typer.echo(f"✓ Model set to: {model}")


@config_app.command("set")
def config_set_planner(
    key: str = typer.Argument(..., help="Planner setting, e.g. cut_threshold"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Set a planner tunable in the global configuration."""
    field_types = {f.name: type(getattr(PlannerConfig, f.name)) for f in fields(PlannerConfig)}
    if key not in field_types:
        typer.echo(f"Unknown planner setting: {key}", err=True)
        typer.echo(f"Valid settings: {', '.join(sorted(field_types))}")
        raise typer.Exit(1)

    expected = field_types[key]
    try:
        typed = expected(value)
    except ValueError:
        typer.echo(f"Invalid value for {key}: {value!r} (expected {expected.__name__})", err=True)
        raise typer.Exit(1)

    with _config_errors():
        global_config.set_planner_value(key, typed)
    typer.echo(f"✓ {key} set to: {typed}")


@config_app.command("list-providers")
def config_list_providers() -> None:
    """List the supported providers and the variable each reads its key from."""
    typer.echo("Available LLM providers:")
    typer.echo()
    for provider in LLMProvider:
        typer.echo(f"  • {provider.value:<12} {API_KEY_ENV_VARS[provider]}")
    typer.echo()
    typer.echo("Use 'hunkplan config list-models <provider>' to see available models.")


@config_app.command("list-models")
def config_list_models(
    provider: str = typer.Argument(None, help="Provider name (all providers when omitted)"),
) -> None:
    """List known models for one provider or for all of them."""
    providers = [_parse_provider(provider)] if provider else list(LLMProvider)
    for llm_provider in providers:
        typer.echo(f"{llm_provider.value}:")
        for model in AVAILABLE_MODELS[llm_provider]:
            typer.echo(f"  • {model}")
        typer.echo()
