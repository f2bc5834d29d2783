"""Static prompt configuration shared by the prompt builder and CLI."""

from __future__ import annotations

SYSTEM_PROMPT = (
    "You are a senior engineer writing documentation comments for source code. "
    "Given a function, class, or file, write concise, accurate documentation that "
    "explains its purpose, its inputs and outputs, and any important behaviour. "
    "Never invent behaviour that is not visible in the code."
)

EXAMPLE_SOURCE = "def area(radius):\n    return math.pi * radius * radius"

EXAMPLE_DOC = (
    "Compute the area of a circle.\n"
    "\n"
    "Takes the circle radius and returns pi * radius**2."
)

DEFAULT_PROMPT_TEMPLATE = """\
{{ system }}

Document each of the {{ units | length }} unit(s) below from `{{ paths | join("`, `") }}`.
Answer with exactly one block per unit, in the same order, using this format:

<<<doc id="UNIT_ID">>>
documentation text
<<<end doc>>>

Write plain prose only. Do not repeat the code and do not add comment markers.
Leave a block empty if a unit needs no documentation.

Example unit:
{{ example_source }}

Example answer:
{{ example_doc }}

{% for unit in units %}
{{ unit.marked }}
{% endfor %}
"""


__all__ = ["DEFAULT_PROMPT_TEMPLATE", "EXAMPLE_DOC", "EXAMPLE_SOURCE", "SYSTEM_PROMPT"]
