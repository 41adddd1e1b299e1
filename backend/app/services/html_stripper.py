"""
Naive HTML-to-text conversion for alert emails.

This is not an HTML parser. Everything between "<" and the next ">" is
dropped, and every run of text between tags becomes its own line. The
purchase extractor's line-position rules are tuned against exactly this
output shape, so the behaviour must stay byte-for-byte stable.

Known limitation: a literal "<" in running text (e.g. "if a < b") starts
tag suppression and swallows text up to the next ">". It is unclear whether
any supported bank template ever hits this; it is left as is.
"""

from typing import Optional

from app.services.email_errors import BadlyFormattedError

_BODY_OPEN = "<body"
_BODY_CLOSE = "</body>"


def extract_html_body(html: str) -> Optional[str]:
    """
    Return the slice from the first "<body" through the first "</body>",
    tags included. None if either tag is missing.

        extract_html_body("<html><body class=x>HI</body></html>")
        -> "<body class=x>HI</body>"
    """
    start = html.find(_BODY_OPEN)
    if start == -1:
        return None
    end = html.find(_BODY_CLOSE)
    if end == -1:
        return None
    return html[start : end + len(_BODY_CLOSE)]


def strip_tags(html: str) -> str:
    """
    Drop everything inside angle brackets, emitting one line per text run.

    A newline is written when a tag starts right after some text, so
    "<div>A</div><div>B</div>" becomes "A\\nB\\n". A ">" outside a tag is
    ordinary text.
    """
    output: list[str] = []
    in_tag = False
    saw_content = False

    for ch in html:
        if ch == "<":
            in_tag = True
            if saw_content:
                output.append("\n")
                saw_content = False
        elif ch == ">" and in_tag:
            in_tag = False
        elif not in_tag:
            output.append(ch)
            saw_content = True

    return "".join(output)


def strip_html(html: str) -> str:
    """
    Extract the <body> region of an HTML document and strip its tags.

    Raises BadlyFormattedError if the body tags are not both present.
    """
    body = extract_html_body(html)
    if body is None:
        raise BadlyFormattedError()
    return strip_tags(body)
