import os
from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")


class EmailLayout:
    """Wraps a plain-text message body into the HTML email layout, one paragraph per line."""

    def __init__(self, template_dir: str = TEMPLATE_DIR, template_name: str = "message.html.j2"):
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "j2"]),
        )
        self.template_name = template_name

    def render(self, body: str) -> str:
        template = self.env.get_template(self.template_name)
        return template.render(lines=body.split("\n"))
