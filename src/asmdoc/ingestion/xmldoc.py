"""Sidecar XML documentation loading.

Compilers emit one ``<doc>`` file per assembly::

    <doc>
      <members>
        <member name="M:N.Calculator.Add(System.Int32,System.Int32)">
          <summary>Adds two integers.</summary>
          <param name="a">First addend.</param>
          <exception cref="T:System.OverflowException">On overflow.</exception>
        </member>
      </members>
    </doc>

Uploaded files are untrusted, so parsing goes through defusedxml.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterator, Optional
from xml.etree.ElementTree import Element

from defusedxml import DefusedXmlException, ElementTree

from asmdoc.errors import MalformedDocumentation
from asmdoc.models import DocComment

LOGGER = logging.getLogger(__name__)


def _text(element: Optional[Element]) -> Optional[str]:
    """Return the element's text content, nested markup included, trimmed."""
    if element is None:
        return None
    return "".join(element.itertext()).strip()


def _keyed_texts(member: Element, tag: str, attribute: str) -> Dict[str, str]:
    entries: Dict[str, str] = {}
    for node in member.findall(tag):
        key = node.get(attribute)
        if key is not None:
            entries[key] = _text(node) or ""
    return entries


def parse_member(member: Element) -> DocComment:
    return DocComment(
        summary=_text(member.find("summary")),
        remarks=_text(member.find("remarks")),
        returns=_text(member.find("returns")),
        example=_text(member.find("example")),
        parameters=_keyed_texts(member, "param", "name"),
        exceptions=_keyed_texts(member, "exception", "cref"),
    )


class XmlDocumentation:
    """In-memory index of ``<member>`` comments keyed by documentation identifier."""

    def __init__(self) -> None:
        self._comments: Dict[str, DocComment] = {}

    def load(self, path: Path) -> bool:
        """Parse ``path`` into the index.

        Returns ``False`` when the file does not exist. Raises
        ``MalformedDocumentation`` when it exists but cannot be parsed.
        """
        path = Path(path)
        if not path.is_file():
            LOGGER.debug("No documentation file at %s", path)
            return False

        try:
            root = ElementTree.parse(path).getroot()
        except (ElementTree.ParseError, DefusedXmlException) as exc:
            raise MalformedDocumentation(path, str(exc)) from exc
        except OSError as exc:
            raise MalformedDocumentation(path, f"unreadable ({exc})") from exc

        members = root.find("members")
        if members is None:
            LOGGER.debug("Documentation file %s has no <members> element", path)
            return True

        count = 0
        for member in members.findall("member"):
            name = member.get("name")
            if name is None:
                continue
            self._comments[name] = parse_member(member)
            count += 1
        LOGGER.debug("Loaded %d documentation entries from %s", count, path)
        return True

    def lookup(self, entity_id: str) -> Optional[DocComment]:
        return self._comments.get(entity_id)

    def has_documentation(self, entity_id: str) -> bool:
        return entity_id in self._comments

    def identifiers(self) -> Iterator[str]:
        return iter(self._comments)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._comments

    def __len__(self) -> int:
        return len(self._comments)
