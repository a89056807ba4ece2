"""Generate typed ``PromptModel`` wrappers from prompt schemas."""

import keyword
import logging
import re
from collections.abc import Iterable
from pathlib import Path

from wish_sdk.models.schema import ContextVariable, PromptSchema

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = Path("wish_prompts")

# First line of every generated module; the package __init__ is rebuilt from it
GENERATED_MARKER = "# Generated by wish-sdk:"
_MARKER_PATTERN = re.compile(
    rf"^{re.escape(GENERATED_MARKER)} (?P<slug>\S+) -> (?P<class_name>\w+)$"
)


def parse_slug_list(value: str | None) -> list[str]:
    """Split a comma-separated ``--only`` / ``--except`` value."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def filter_prompts(
    prompts: Iterable[PromptSchema],
    only: list[str] | None = None,
    except_: list[str] | None = None,
) -> list[PromptSchema]:
    """Select prompts by slug.

    ``only`` keeps the listed slugs; ``except_`` then drops its slugs.
    """
    selected = list(prompts)
    if only:
        selected = [prompt for prompt in selected if prompt.slug in only]
    if except_:
        selected = [prompt for prompt in selected if prompt.slug not in except_]
    return selected


def class_name_for(slug: str) -> str:
    """``medical-summary`` -> ``MedicalSummary``."""
    words = [word for word in re.split(r"[^0-9a-zA-Z]+", slug) if word]
    name = "".join(word[:1].upper() + word[1:] for word in words) or "Prompt"
    if name[0].isdigit():
        name = f"Prompt{name}"
    return name


def module_name_for(slug: str) -> str:
    """``medical-summary`` -> ``medical_summary``."""
    name = re.sub(r"[^0-9a-zA-Z]+", "_", slug).strip("_").lower() or "prompt"
    if name[0].isdigit() or keyword.iskeyword(name):
        name = f"prompt_{name}"
    return name


def field_name_for(variable: str) -> str:
    """Turn a context variable name into a valid Python attribute name."""
    name = re.sub(r"\W+", "_", variable).strip("_") or "var"
    if name[0].isdigit():
        name = f"var_{name}"
    if keyword.iskeyword(name):
        name = f"{name}_"
    return name


def _doc_text(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')


def _render_field(variable: ContextVariable, required: bool) -> str:
    attr = field_name_for(variable.name)
    args = [] if required else ["default=None"]
    if attr != variable.name:
        args.append(f"alias={variable.name!r}")
    if variable.description:
        args.append(f"description={variable.description!r}")
    annotation = "str" if required else "str | None"

    if args:
        return f"    {attr}: {annotation} = Field({', '.join(args)})"
    return f"    {attr}: {annotation}"


def _describe_variables(title: str, variables: list[ContextVariable]) -> list[str]:
    if not variables:
        return []
    lines = ["", f"{title}:"]
    for var in variables:
        suffix = f": {var.description}" if var.description else ""
        lines.append(f"- {var.name}{suffix}")
    return lines


def render_prompt_module(prompt: PromptSchema) -> str:
    """Render the source of a module wrapping one prompt."""
    class_name = class_name_for(prompt.slug)

    doc_lines = [f"Auto-generated wrapper for the '{prompt.slug}' prompt."]
    if prompt.description:
        doc_lines += ["", prompt.description]
    doc_lines += _describe_variables("Required context variables", prompt.required_context_variables)
    doc_lines += _describe_variables("Optional context variables", prompt.optional_context_variables)
    doc_lines += ["", f"Regenerate with: wish-sdk gen-prompt {prompt.slug}"]
    module_doc = _doc_text("\n".join(doc_lines))

    fields = [_render_field(var, True) for var in prompt.required_context_variables]
    fields += [_render_field(var, False) for var in prompt.optional_context_variables]
    uses_field = any("Field(" in line for line in fields)

    imports = ["from typing import ClassVar", ""]
    if uses_field:
        imports += ["from pydantic import Field", ""]
    imports.append("from wish_sdk import PromptModel")

    body = [
        f"class {class_name}(PromptModel):",
        f'    """{_doc_text(prompt.name.rstrip("."))}."""',
        "",
        f"    slug: ClassVar[str] = {prompt.slug!r}",
    ]
    if fields:
        body += [""] + fields

    parts = [
        f"{GENERATED_MARKER} {prompt.slug} -> {class_name}",
        f'"""{module_doc}\n"""',
        "",
        *imports,
        "",
        "",
        *body,
    ]
    return "\n".join(parts) + "\n"


def render_package_init(entries: list[tuple[str, str]]) -> str:
    """Render an ``__init__.py`` re-exporting generated classes.

    Args:
        entries: (module name, class name) pairs.
    """
    entries = sorted(entries)
    lines = ['"""Generated prompt wrappers."""', ""]
    lines += [f"from .{module} import {class_name}" for module, class_name in entries]
    lines += ["", "__all__ = ["]
    lines += [f'    "{class_name}",' for _, class_name in sorted(entries, key=lambda e: e[1])]
    lines.append("]")
    return "\n".join(lines) + "\n"


def _scan_generated(output_dir: Path) -> list[tuple[str, str]]:
    entries = []
    for path in sorted(output_dir.glob("*.py")):
        if path.name == "__init__.py":
            continue
        with open(path, encoding="utf-8") as f:
            first_line = f.readline().rstrip("\n")
        match = _MARKER_PATTERN.match(first_line)
        if match:
            entries.append((path.stem, match.group("class_name")))
    return entries


def write_prompt_modules(
    prompts: Iterable[PromptSchema],
    output_dir: Path = DEFAULT_OUTPUT_DIR,
) -> list[Path]:
    """Write one module per prompt and refresh the package ``__init__``.

    Hand-written modules in ``output_dir`` are left alone and not re-exported.

    Returns:
        Paths of the modules written, in input order.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for prompt in prompts:
        path = output_dir / f"{module_name_for(prompt.slug)}.py"
        path.write_text(render_prompt_module(prompt), encoding="utf-8")
        logger.info(f"Generated {path}", extra={"slug": prompt.slug})
        written.append(path)

    init_path = output_dir / "__init__.py"
    init_path.write_text(render_package_init(_scan_generated(output_dir)), encoding="utf-8")
    return written
