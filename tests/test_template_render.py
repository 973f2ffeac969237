import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.template_render import BUTTON_ERROR_TEXT, render_button, render_button_bar, render_message, render_template
from button_pipeline import ResolvedButtonConfig


class TestTemplateRender(unittest.TestCase):
    def test_button(self) -> None:
        html = render_button(ResolvedButtonConfig("Open", tooltip="Open record", icon="Add"), 2)
        self.assertIn('data-index="2"', html)
        self.assertIn('title="Open record"', html)
        self.assertIn("ms-Icon--Add", html)
        self.assertIn("<span>Open</span>", html)

    def test_link(self) -> None:
        html = render_button(ResolvedButtonConfig("Site", url="https://example.com/?a=1&b=2", show_as_link=True), 0)
        self.assertIn('<a class="smart-button-link" href="https://example.com/?a=1&amp;b=2"', html)
        self.assertIn('target="_blank"', html)
        self.assertNotIn("<button", html)

    def test_values_are_escaped(self) -> None:
        html = render_button(ResolvedButtonConfig("<script>alert(1)</script>"), 0)
        self.assertNotIn("<script>", html)
        self.assertIn("&lt;script&gt;", html)

    def test_broken_button_becomes_notice(self) -> None:
        html = render_button_bar([ResolvedButtonConfig("Ok"), {"url": "x"}])
        self.assertIn("<span>Ok</span>", html)
        self.assertIn(BUTTON_ERROR_TEXT, html)
        self.assertTrue(html.startswith('<div class="smart-button-bar">'))

    def test_message_roles(self) -> None:
        self.assertIn('role="alert"', render_message("Error: x"))
        self.assertIn('role="status"', render_message("Loading", kind="info"))

    def test_sandbox_blocks_attributes(self) -> None:
        with self.assertRaises(Exception):
            render_template("{{ value.__class__ }}", {"value": "x"})


if __name__ == "__main__":
    unittest.main()
