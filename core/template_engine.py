# core/template_engine.py
"""
Mail Template Engine: renders HTML e-mail templates, takes the subject from
the <title> element, inlines CSS and derives the plain-text alternative
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import premailer
from bs4 import BeautifulSoup
from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape
from jinja2.exceptions import TemplateError, TemplateNotFound, UndefinedError

logger = logging.getLogger(__name__)


@dataclass
class RenderedMail:
    """Result of template rendering operation"""
    subject: str
    html: str
    text: str
    render_time_ms: float


class MailTemplateEngine:
    """
    Jinja2 environment for e-mail templates (templates/mail/<name>.html)
    """

    def __init__(self, template_dir: str, enable_css_inlining: bool = True):
        self.enable_css_inlining = enable_css_inlining
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(['html', 'xml']),
            undefined=StrictUndefined,  # Fail on undefined variables
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template: str, context: Dict[str, Any]) -> RenderedMail:
        """
        Render templates/mail/<template>.html with *context*

        Raises:
            TemplateError: template missing, syntax error or undefined variable
        """
        start_time = datetime.now()

        try:
            html = self.env.get_template(f'{template}.html').render(**context)
        except TemplateNotFound:
            raise TemplateError(f"Mail template '{template}' not found")
        except UndefinedError as e:
            raise TemplateError(f"Template variable error: {str(e)}")

        subject = subject_from_html(html) or template

        if self.enable_css_inlining:
            html = inline_css(html)

        text = html_to_text(html)

        render_time_ms = (datetime.now() - start_time).total_seconds() * 1000
        logger.debug(f"Mail template {template} rendered in {render_time_ms:.2f}ms")

        return RenderedMail(subject=subject, html=html, text=text, render_time_ms=render_time_ms)


def subject_from_html(html: str) -> Optional[str]:
    """Text of the <title> element, if any"""
    soup = BeautifulSoup(html, 'html.parser')
    title = soup.find('title')
    if title is None:
        return None
    return title.get_text().strip() or None


def inline_css(html: str) -> str:
    """
    Inline CSS styles for better email client compatibility
    """
    try:
        p = premailer.Premailer(
            html,
            remove_classes=False,
            keep_style_tags=True,
            strip_important=False,
            disable_validation=True,
            cssutils_logging_level=logging.CRITICAL,
        )
        return p.transform()
    except Exception as e:
        logger.warning(f"CSS inlining failed: {str(e)}")
        return html


BLOCK_TAGS = ('p', 'div', 'table', 'tr', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6')


def html_to_text(html: str) -> str:
    """
    Plain-text alternative for an HTML message: body text only, block
    elements separated by blank lines, links as 'text (url)'
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, 'html.parser')
    for element in soup.find_all(['head', 'style', 'script']):
        element.decompose()

    for link in soup.find_all('a', href=True):
        if link['href'] != link.get_text().strip():
            link.append(f" ({link['href']})")
    for br in soup.find_all('br'):
        br.replace_with('\n')
    for li in soup.find_all('li'):
        li.insert(0, '- ')
        li.append('\n')
    for block in soup.find_all(BLOCK_TAGS):
        block.append('\n\n')

    lines = (re.sub(r'\s+', ' ', line).strip() for line in soup.get_text().split('\n'))
    return re.sub(r'\n{3,}', '\n\n', '\n'.join(lines)).strip()
