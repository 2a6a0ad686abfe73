"""Rich-text normalization: clickable links and plain-text projections."""

import re

from bs4 import BeautifulSoup, NavigableString, Tag

from timeline_studio.models import Event

LINK_MARKER = 'target="_blank" rel="noopener noreferrer"'
URL_PATTERN = re.compile(r"(https?://[^\s<>]+)")


def _build_link(soup: BeautifulSoup, url: str) -> Tag:
    link = soup.new_tag(
        "a",
        attrs={"href": url, "target": "_blank", "rel": "noopener noreferrer"},
    )
    link.string = url
    return link


def _linkify_text(soup: BeautifulSoup, node: NavigableString) -> bool:
    fragments = URL_PATTERN.split(str(node))
    if len(fragments) == 1:
        return False

    replacements: list[NavigableString | Tag] = []
    for index, fragment in enumerate(fragments):
        # split() with one capture group alternates text, url, text, ...
        if index % 2 == 0:
            if fragment:
                replacements.append(NavigableString(fragment))
        else:
            replacements.append(_build_link(soup, fragment))
    node.replace_with(*replacements)
    return True


def _linkify_children(soup: BeautifulSoup, parent: Tag) -> bool:
    changed = False
    for child in list(parent.children):
        if isinstance(child, Tag):
            if child.name == "a":
                continue
            changed = _linkify_children(soup, child) or changed
        elif type(child) is NavigableString:
            changed = _linkify_text(soup, child) or changed
    return changed


def linkify(html: str | None) -> str:
    """
    Wrap bare URLs in rich text as ``<a target="_blank">`` links.

    Text already inside an anchor is left alone, and text that already
    carries this function's anchor marker is returned unchanged, so
    ``linkify(linkify(x)) == linkify(x)``.

    :param html: Rich-text HTML fragment
    :type html: str | None
    :return: The fragment with URLs turned into links
    :rtype: str
    """
    if not html:
        return ""
    if LINK_MARKER in html or not URL_PATTERN.search(html):
        return html

    soup = BeautifulSoup(html, "html.parser")
    if not _linkify_children(soup, soup):
        return html
    return soup.decode()


def to_plain_text(html: str | None) -> str:
    """
    Strip all markup and return the concatenated text content.

    :param html: Rich-text HTML fragment
    :type html: str | None
    :return: Text content only
    :rtype: str
    """
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text()


def normalize_event_text(event: Event) -> Event:
    """Linkify an event's rich-text fields and derive its plain title."""
    title = linkify(event.title)
    return event.model_copy(
        update={
            "title": title,
            "description": linkify(event.description),
            "plain_title": to_plain_text(title),
        }
    )
