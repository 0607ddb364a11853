"""Best-effort node label rename inside Mermaid flowchart source."""

import re

# Node shapes tried in order. Only the first match of the first shape that matches is replaced.
_SHAPES = (
    (r"\[", r"\]", "[{}]"),
    (r"\(\(", r"\)\)", "(({}))"),
    (r"\[\[", r"\]\]", "[[{}]]"),
    (r"\(", r"\)", "({})"),
    (r"\{", r"\}", "{{{}}}"),
    (r'"', r'"', '"{}"'),
)


def rename_node_label(source: str, old_label: str, new_label: str) -> str:
    """Replace the first occurrence of old_label with new_label.

    Bracketed node shapes are preferred over a plain substring match. When
    the label is empty, unchanged, or absent, the source comes back as is.
    """
    current = str(old_label or "").strip()
    replacement = str(new_label or "").strip()
    if not current or not replacement or current == replacement:
        return source

    escaped = re.escape(current)
    for opener, closer, template in _SHAPES:
        pattern = re.compile(rf"{opener}\s*{escaped}\s*{closer}")
        if pattern.search(source):
            wrapped = template.format(replacement)
            return pattern.sub(lambda _m: wrapped, source, count=1)

    index = source.find(current)
    if index >= 0:
        return source[:index] + replacement + source[index + len(current):]

    return source
