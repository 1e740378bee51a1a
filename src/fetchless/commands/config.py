"""Config commands -- view and modify the user configuration.

Provides the ``fetchless config`` group for reading, updating and
resetting the :class:`~fetchless.models.GlobalConfig` stored in the
fetchless config directory. Its ``client`` section supplies the defaults
``fetchless get`` builds its :class:`~fetchless.client.CachingClient` from.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from fetchless.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)


def _coerce(current: Any, value: str) -> Any:
    """Convert *value* to the type of the field's *current* value.

    Raises:
        ValueError: If *value* does not parse as that type.
    """
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    if isinstance(current, list):
        return [int(item) for item in value.split(",") if item.strip()]
    return value


@config_app.command("show")
def config_show() -> None:
    """Show the user configuration.

    Example::

        fetchless config show
        fetchless --json config show
    """
    from fetchless.config import get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key in dot notation, e.g. 'client.max_age'."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is converted to the type of the existing field (bool, int,
    float, or a comma-separated list of integers) and the result is
    validated before it is saved.

    Example::

        fetchless config set client.strategy stale-while-revalidate
        fetchless config set client.max_age 60
        fetchless config set client.retry.retry_status_codes 429,503
    """
    from fetchless.config import load_global_config, save_global_config
    from fetchless.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")

    *parents, field_name = key.split(".")
    target = data
    for part in parents:
        if not isinstance(target.get(part), dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[part]
    if field_name not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    try:
        target[field_name] = _coerce(target[field_name], value)
    except ValueError:
        error(f"Invalid value for {key}: {value}")
        raise typer.Exit(code=2) from None

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {target[field_name]}")


@config_app.command("reset")
def config_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Reset the user configuration to defaults."""
    from fetchless.config import save_global_config
    from fetchless.models import GlobalConfig

    if not yes and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
