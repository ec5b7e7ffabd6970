# api/responses.py
"""
Content negotiation for API responses: JSON by default, XML when the
client's Accept header prefers it
"""

import xml.etree.ElementTree as ET
from typing import Any, Dict, Optional

from flask import Response, jsonify, request

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
XML_TYPES = ('application/xml', 'text/xml')


def wants_xml() -> bool:
    best = request.accept_mimetypes.best_match(['application/json', *XML_TYPES])
    return best in XML_TYPES


def _xml_text(value) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def _xml_element(parent: Optional[ET.Element], tag: str, data, item_tag: str = 'item') -> ET.Element:
    element = ET.Element(tag) if parent is None else ET.SubElement(parent, tag)
    if isinstance(data, dict):
        for key, value in data.items():
            _xml_element(element, str(key), value, item_tag=key[:-1] if str(key).endswith('s') else 'item')
    elif isinstance(data, (list, tuple)):
        for value in data:
            _xml_element(element, item_tag, value)
    else:
        element.text = _xml_text(data)
    return element


def to_xml(data, root: str, item: str = 'item') -> str:
    """
    Serialise dicts/lists of scalars to an XML document; booleans are
    rendered as true/false
    """
    element = _xml_element(None, root, data, item_tag=item)
    return XML_DECLARATION + '\n' + ET.tostring(element, encoding='unicode')


def respond(data: Any, status: int = 200, headers: Optional[Dict[str, str]] = None,
            root: str = 'response', item: str = 'item') -> Response:
    """Response in the format the client prefers"""
    if wants_xml():
        response = Response(to_xml(data, root, item), status=status, mimetype='application/xml')
    else:
        response = jsonify(data)
        response.status_code = status
    for name, value in (headers or {}).items():
        response.headers[name] = value
    return response
