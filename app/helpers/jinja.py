import mistune
from jinja2 import Environment, FileSystemLoader

from app.helpers.checklist import checklist_progress
from app.helpers.resources import resources_dir

_markdown = mistune.create_markdown(
    escape=True,  # Descriptions are user input, raw HTML is never trusted
    plugins=["strikethrough", "url"],
)

# Jinja configuration
jinja = Environment(
    auto_reload=False,  # Disable auto-reload for performance
    autoescape=True,
    enable_async=True,
    loader=FileSystemLoader(
        [
            resources_dir("email"),
            resources_dir("public_website"),
        ]
    ),
)
# Jinja custom functions
jinja.filters["markdown"] = lambda x: _markdown(x) if x else ""
jinja.filters["progress"] = checklist_progress
