# solpack/modules/template.py
"""
Strict ``${VAR}`` template rendering for text manifests.

Every variable referenced by a template must be provided.
"""

from __future__ import annotations

import re
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional, Union

from solpack.modules.errors import TemplateRenderError

TEMPLATE_RE = re.compile(r"\$\{([A-Za-z0-9_]+)\}")


def render(text: str, variables: Dict[str, Any]) -> str:
    missing = sorted({m.group(1) for m in TEMPLATE_RE.finditer(text) if m.group(1) not in variables})
    if missing:
        raise TemplateRenderError(f"template variables not provided: {', '.join(missing)}")

    def repl(m):
        val = variables[m.group(1)]
        if val is None:
            raise TemplateRenderError(f"template variable {m.group(1)} is None")
        return str(val)

    return TEMPLATE_RE.sub(repl, text)


def resource_text(name: str) -> str:
    try:
        return (resources.files("solpack") / "resources" / name).read_text(encoding="utf-8")
    except (FileNotFoundError, OSError) as e:
        raise TemplateRenderError(f"template resource {name} not found") from e


def render_template(source: Union[str, Path], destination: Union[str, Path], variables: Dict[str, Any],
                    resource: bool = False) -> str:
    """Render ``source`` (a file path, or a packaged resource name) into ``destination``."""
    if resource:
        text = resource_text(str(source))
    else:
        try:
            text = Path(source).read_text(encoding="utf-8")
        except OSError as e:
            raise TemplateRenderError(f"cannot read template {source}: {e}") from e
    out = render(text, variables)
    Path(destination).write_text(out, encoding="utf-8")
    return out


def quote(value: Optional[str]) -> str:
    """Double-quote a manifest value."""
    return '"' + (value or "").replace("\\", "\\\\").replace('"', '\\"') + '"'
