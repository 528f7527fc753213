"""CloudFormation templates that launch the probe function.

The built-in templates embed the probe Lambda inline. A template reference
is either ``None`` (the default template), ``builtin:<name>`` or a path to
a template file on disk.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from egressprobe.core.errors import TemplateError

logger = structlog.get_logger()

BUILTIN_PREFIX = "builtin:"
DEFAULT_TEMPLATE = "default"

_TEMPLATES_DIR = Path(__file__).parent


def builtin_templates() -> list[str]:
    """Names of the templates shipped with the package."""
    return sorted(path.stem.replace("_", "-") for path in _TEMPLATES_DIR.glob("*.yaml"))


def load_template(reference: str | None = None) -> str:
    """Return the template body for ``reference``.

    Raises:
        TemplateError: if the built-in name is unknown or the file cannot be read
    """
    if not reference:
        reference = BUILTIN_PREFIX + DEFAULT_TEMPLATE

    if reference.startswith(BUILTIN_PREFIX):
        name = reference[len(BUILTIN_PREFIX) :]
        path = _TEMPLATES_DIR / f"{name.replace('-', '_')}.yaml"
        if not path.is_file():
            raise TemplateError(
                f"unknown built-in template '{name}'",
                details={"available": ", ".join(builtin_templates())},
            )
    else:
        path = Path(reference).expanduser()

    try:
        body = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise TemplateError(f"could not read template file '{path}': {exc}") from exc

    if not body.strip():
        raise TemplateError(f"template file '{path}' is empty")

    logger.debug("template_loaded", template=str(path), size=len(body))
    return body
