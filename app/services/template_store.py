"""
Template Store - read-only registry of markup templates used by the renderer.

Templates are owned by the surrounding application; this store only holds
what it is given (built-ins plus an optional directory of JSON records) and
answers lookups by id or by name.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Literal, Mapping, Optional

from app.services.placeholder_engine import placeholder_names

logger = logging.getLogger(__name__)


FieldType = Literal["text", "textarea", "color"]


@dataclass
class TemplateField:
    """A substitutable field declared by a template."""

    name: str
    type: FieldType = "text"
    label: Optional[str] = None
    default: Optional[str] = None


@dataclass
class Template:
    """Markup + styling with placeholders and an intrinsic canvas size."""

    id: str
    name: str
    html: str
    css: str = ""
    fields: list[TemplateField] = field(default_factory=list)
    width: int = 1080
    height: int = 1080

    @classmethod
    def from_dict(cls, data: Mapping) -> "Template":
        fields = [
            TemplateField(
                name=f["name"],
                type=f.get("type", "text"),
                label=f.get("label"),
                default=f.get("default"),
            )
            for f in data.get("fields", [])
        ]
        return cls(
            id=str(data.get("id") or data["name"]),
            name=data["name"],
            html=data.get("html", ""),
            css=data.get("css", ""),
            fields=fields,
            width=int(data.get("width", 1080)),
            height=int(data.get("height", 1080)),
        )


def resolve_field_values(template: Template, values: Optional[Mapping[str, str]]) -> dict[str, str]:
    """
    Build the substitution mapping for a template.

    Absent keys fall back to the field's declared default, or to an empty
    string if the field has none. Keys not declared by the template pass
    through unchanged.
    """
    values = dict(values or {})
    resolved: dict[str, str] = {}
    for template_field in template.fields:
        if template_field.name in values:
            resolved[template_field.name] = values[template_field.name]
        else:
            resolved[template_field.name] = template_field.default or ""
    for key, value in values.items():
        resolved.setdefault(key, value)
    return resolved


class TemplateStore:
    """In-memory template registry with lookup by id or name."""

    def __init__(self, templates: Optional[list[Template]] = None):
        self._by_id: dict[str, Template] = {}
        for template in templates or []:
            self.register(template)

    def register(self, template: Template) -> None:
        declared = {f.name for f in template.fields}
        undeclared = [
            name for name in placeholder_names(template.html + template.css)
            if name not in declared
        ]
        if undeclared:
            logger.debug(f"Template '{template.name}' uses undeclared placeholders: {undeclared}")
        self._by_id[template.id] = template

    def get(self, ref: str) -> Template:
        """
        Look up a template by id, then by name.

        Raises:
            TemplateNotFoundError: If neither matches
        """
        template = self._by_id.get(ref)
        if template is not None:
            return template
        for candidate in self._by_id.values():
            if candidate.name == ref:
                return candidate
        raise TemplateNotFoundError(f"Template not found: {ref}")

    def templates(self) -> list[Template]:
        return list(self._by_id.values())

    def load_directory(self, directory: str) -> int:
        """Register every *.json template record in `directory`. Returns the count loaded."""
        if not os.path.isdir(directory):
            logger.warning(f"Templates directory not found: {directory}")
            return 0

        loaded = 0
        for filename in sorted(os.listdir(directory)):
            if not filename.endswith(".json"):
                continue
            path = os.path.join(directory, filename)
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self.register(Template.from_dict(data))
            loaded += 1

        logger.info(f"Loaded {loaded} templates from {directory}")
        return loaded


# ============================================================
# BUILT-IN TEMPLATES
# ============================================================

_WATERMARK_CSS = """
.watermark {
  position: absolute; bottom: 40px; right: 40px;
  font-size: 24px; font-weight: 600; color: #ffffff60;
}
"""

QUOTE_TEMPLATE = Template(
    id="quote",
    name="quote",
    html=(
        '<div class="card">'
        '<div class="quote">&ldquo;{{quote}}&rdquo;</div>'
        '<div class="author">&mdash; {{author}}</div>'
        '<div class="watermark">{{watermark|schildi.ai}}</div>'
        "</div>"
    ),
    css="""
.card {
  display: flex; flex-direction: column; justify-content: center; align-items: center;
  width: 100%; height: 100%; padding: 80px; position: relative;
  background: linear-gradient(135deg, {{brandColor|#6366f1}} 0%, #1a1a2e 100%);
  font-family: 'CustomFont', sans-serif; color: #ffffff;
}
.quote { font-size: 48px; font-weight: 400; text-align: center; line-height: 1.2; margin-bottom: 40px; }
.author { font-size: 32px; font-weight: 700; color: #ffffff90; text-align: center; }
""" + _WATERMARK_CSS,
    fields=[
        TemplateField(name="quote", type="textarea", label="Quote"),
        TemplateField(name="author", type="text", label="Author"),
        TemplateField(name="brandColor", type="color", label="Brand color", default="#6366f1"),
    ],
    width=1080,
    height=1080,
)

TEXT_TEMPLATE = Template(
    id="text",
    name="text",
    html=(
        '<div class="card">'
        '<div class="title">{{title}}</div>'
        '<div class="body">{{body}}</div>'
        '<div class="watermark">{{watermark|schildi.ai}}</div>'
        "</div>"
    ),
    css="""
.card {
  display: flex; flex-direction: column; justify-content: center; align-items: center;
  width: 100%; height: 100%; padding: 80px; position: relative;
  background: #1a1a2e; font-family: 'CustomFont', sans-serif; color: #ffffff;
}
.title {
  font-size: 64px; font-weight: 700; color: {{brandColor|#ef4444}};
  text-align: center; margin-bottom: 40px; line-height: 1.1;
}
.body { font-size: 36px; font-weight: 400; text-align: center; line-height: 1.4; }
""" + _WATERMARK_CSS,
    fields=[
        TemplateField(name="title", type="text", label="Title"),
        TemplateField(name="body", type="textarea", label="Body"),
        TemplateField(name="brandColor", type="color", label="Brand color", default="#ef4444"),
    ],
    width=1080,
    height=1080,
)

BUILTIN_TEMPLATES = [QUOTE_TEMPLATE, TEXT_TEMPLATE]


def create_template_store(templates_directory: Optional[str] = None) -> TemplateStore:
    """Build a store holding the built-ins plus any records found in `templates_directory`."""
    store = TemplateStore(BUILTIN_TEMPLATES)
    if templates_directory:
        store.load_directory(templates_directory)
    return store


class TemplateNotFoundError(Exception):
    """Exception raised when a template id/name does not resolve."""
    pass
