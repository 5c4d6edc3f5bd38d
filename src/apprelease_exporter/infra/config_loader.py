from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from jinja2 import Environment, StrictUndefined, TemplateError
from pydantic import ValidationError

from ..core.domain.exceptions import ConfigurationError
from ..core.domain.projects import ExporterConfig
from ..core.ports import LoggerPort


def render_config(text: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Render the project file as a Jinja2 template.

    The process environment is exposed as ``env``, e.g.
    ``password: "{{ env.REGISTRY_PASSWORD }}"``. Undefined names are errors.
    """
    jinja = Environment(undefined=StrictUndefined, keep_trailing_newline=True, autoescape=False)
    return jinja.from_string(text).render(env=dict(os.environ if environ is None else environ))


def parse_config(text: str, *, source: str = "<string>") -> ExporterConfig:
    """Parse and validate an already rendered YAML document.

    Raises:
        ConfigurationError: On YAML syntax errors or invalid project definitions
    """
    try:
        data: Any = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML: {e}", path=source) from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("project file must be a mapping", path=source)
    try:
        return ExporterConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid project configuration: {e}", path=source) from e


def load_exporter_config(
    path: Path,
    logger: LoggerPort,
    environ: Optional[Mapping[str, str]] = None,
) -> ExporterConfig:
    """Read, render and validate the project file.

    Raises:
        ConfigurationError: If the file is unreadable, fails to render or is invalid
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"cannot read project file: {e}", path=str(path)) from e

    try:
        rendered = render_config(text, environ)
    except TemplateError as e:
        raise ConfigurationError(f"cannot render project file: {e}", path=str(path)) from e

    config = parse_config(rendered, source=str(path))
    logger.info(
        f"loaded {len(config.projects.docker)} docker and {len(config.projects.github)} github projects",
        path=str(path),
        docker_projects=len(config.projects.docker),
        github_projects=len(config.projects.github),
    )
    return config
