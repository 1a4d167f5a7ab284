from jinja2 import Environment, PackageLoader, select_autoescape

templates = Environment(
    loader=PackageLoader("rapid_steno", "templates"),
    autoescape=select_autoescape(["html"]),
)


def render(template_name: str, **context) -> str:
    return templates.get_template(template_name).render(**context)
