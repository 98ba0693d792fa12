# sitebuilder/rendering/renderer.py
"""
Deterministic HTML rendering of component trees.

Output depends only on the tree, the page's title and meta tags, and the
theme key: templates are loaded once, property mappings are emitted in
sorted key order and no clock or request state is consulted. Unchanged
input therefore renders byte-identical output, which preview diffing and
published-page caching rely on.
"""
import logging
import warnings
from typing import Iterable, Optional, Tuple

from jinja2 import Environment, PackageLoader, Template, select_autoescape
from markupsafe import Markup

from sitebuilder.domain.exceptions import RenderPlaceholderUsed
from sitebuilder.tree.model import ComponentTree, Node, PropKind, prop_kind
from sitebuilder.utils.identifiers import ROOT

logger = logging.getLogger(__name__)

COMPONENT_TYPES = (
    "container",
    "section",
    "text",
    "heading",
    "image",
    "button",
    "link",
    "form",
    "input",
)

TEXT_TAGS = ("p", "span", "blockquote", "small", "strong", "em")
INPUT_TYPES = ("text", "email", "tel", "number", "password", "url", "date", "checkbox")

_SAFE_URL_PREFIXES = ("http://", "https://", "mailto:", "tel:", "/", "#", "?")


def safe_url(value) -> str:
    """Drop URLs with schemes a visitor's browser would execute."""
    if value is None:
        return "#"
    url = str(value).strip()
    if not url:
        return "#"
    if url.lower().startswith(_SAFE_URL_PREFIXES):
        return url
    # Relative references ("about", "img/logo.png") carry no scheme
    if ":" not in url.split("/", 1)[0]:
        return url
    return "#"


def _style(value) -> str:
    parts = []
    for key in sorted(value):
        item = value[key]
        if prop_kind(item) in (PropKind.STRING, PropKind.NUMBER):
            parts.append(f"{key}: {item}")
    return "; ".join(parts)


def component_attrs(node: Node) -> Markup:
    """Attributes every component's root element carries."""
    props = node.props
    classes = ["sb-" + node.type]

    css_class = props.get("css_class")
    if css_class is not None and prop_kind(css_class) is PropKind.STRING:
        classes.extend(css_class.split())

    pairs = [
        ("data-component-id", node.id),
        ("data-component-type", node.type),
        ("class", " ".join(classes)),
    ]

    html_id = props.get("html_id")
    if html_id is not None and prop_kind(html_id) is PropKind.STRING:
        pairs.append(("id", html_id))

    style = props.get("style")
    if style is not None and prop_kind(style) is PropKind.MAPPING and style:
        pairs.append(("style", _style(style)))

    return Markup("").join(Markup(' {}="{}"').format(name, value) for name, value in pairs)


def build_environment() -> Environment:
    env = Environment(
        loader=PackageLoader("sitebuilder", "templates"),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=False,
    )
    env.filters["safe_url"] = safe_url
    env.globals["text_tags"] = TEXT_TAGS
    env.globals["input_types"] = INPUT_TYPES
    return env


class Renderer:
    def __init__(self, env: Optional[Environment] = None, default_theme: str = "default"):
        self.env = env or build_environment()
        self.default_theme = default_theme
        self._page_template = self.env.get_template("page.html")
        self._placeholder = self.env.get_template("components/_placeholder.html")
        self._templates = {
            type_tag: self.env.get_template(f"components/{type_tag}.html")
            for type_tag in COMPONENT_TYPES
        }

    # ------------------------
    # Documents
    # ------------------------

    def render_document(
        self,
        tree: ComponentTree,
        *,
        title: str,
        meta: Iterable[Tuple[str, str]] = (),
        theme: Optional[str] = None,
        lang: str = "en",
        page_id: Optional[str] = None,
    ) -> str:
        return self._page_template.render(
            title=title,
            meta=list(meta),
            theme=theme or self.default_theme,
            lang=lang,
            page_id=page_id,
            body=self._render_children(tree, ROOT),
        )

    def render_page(self, page, theme: Optional[str] = None, *, lang: str = "en") -> str:
        """Render a stored Page as a full HTML document."""
        return self.render_document(
            page.load_tree(),
            title=page.title,
            meta=page.meta_pairs(),
            theme=theme,
            lang=lang,
            page_id=page.id,
        )

    # ------------------------
    # Fragments
    # ------------------------

    def render_component(self, tree: ComponentTree, component_id: str) -> str:
        """Render one component and its subtree in isolation."""
        return str(self._render_node(tree, component_id))

    def render_body(self, tree: ComponentTree) -> str:
        return str(self._render_children(tree, ROOT))

    def _render_children(self, tree: ComponentTree, parent_id: str) -> Markup:
        return Markup("").join(
            self._render_node(tree, child_id) for child_id in tree.children_of(parent_id)
        )

    def _render_node(self, tree: ComponentTree, component_id: str) -> Markup:
        node = tree.node(component_id)
        children = self._render_children(tree, component_id)

        template: Optional[Template] = self._templates.get(node.type)
        if template is None:
            logger.warning(
                "No template for component type %r (component %s); rendering placeholder",
                node.type, node.id,
            )
            warnings.warn(
                RenderPlaceholderUsed(
                    f"Component '{node.id}' has unknown type '{node.type}'"
                ),
                stacklevel=2,
            )
            template = self._placeholder

        return Markup(
            template.render(
                component=node,
                props=node.props,
                attrs=component_attrs(node),
                children=children,
            )
        )
