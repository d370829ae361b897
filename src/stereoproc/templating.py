"""Filename templating with ``%{name}`` and ``%{name|spec}`` placeholders."""

import logging
import re
from collections.abc import Mapping
from numbers import Integral

from .errors import TemplateError

logger = logging.getLogger(__name__)

# name: word characters; spec: printf-style directive without the leading "%"
PLACEHOLDER_PATTERN = re.compile(r"%\{(?P<name>\w+)(?:\|(?P<spec>\w+))?\}")

TemplateValue = str | int


def _format_value(value: object, spec: str | None, placeholder: str) -> str:
    """Format a single substitution value.

    Strings use ``%<spec>`` as a string rule (default ``s``), integers use it
    as an integer rule (default ``d``). Any other value kind renders as an
    empty string.

    Args:
        value: Dictionary value for the placeholder.
        spec: Directive from the placeholder, or None.
        placeholder: Original placeholder text (for error messages).

    Returns:
        Formatted replacement text.

    Raises:
        TemplateError: If the directive cannot be applied to the value.
    """
    if isinstance(value, str):
        directive = "%" + (spec or "s")
    elif isinstance(value, Integral) and not isinstance(value, bool):
        directive = "%" + (spec or "d")
        value = int(value)
    else:
        logger.debug(
            "Unsupported value type %s for %s, substituting empty string",
            type(value).__name__,
            placeholder,
        )
        return ""

    try:
        return directive % value
    except (TypeError, ValueError) as e:
        raise TemplateError(
            f"Cannot apply directive '{directive}' to {value!r} in {placeholder}: {e}"
        ) from None


class StringTemplate:
    """A format string compiled once and rendered against variable dictionaries.

    Placeholders whose name is missing from the dictionary are kept verbatim,
    so unknown tokens stay visible in the rendered output.

    Example:
        >>> StringTemplate("img_%{f|04d}_%{s}.png").render({"f": 7, "s": "L"})
        'img_0007_L.png'
    """

    def __init__(self, template: str):
        self.template = template
        self._matches = list(PLACEHOLDER_PATTERN.finditer(template))

    @property
    def names(self) -> list[str]:
        """Variable names referenced by the template, in order of appearance."""
        return [m.group("name") for m in self._matches]

    def render(self, variables: Mapping[str, object]) -> str:
        """Render the template.

        Args:
            variables: Mapping of variable name to string or integer value.

        Returns:
            Rendered string.
        """
        parts = []
        index = 0
        for match in self._matches:
            parts.append(self.template[index : match.start()])

            name = match.group("name")
            if name in variables:
                parts.append(
                    _format_value(variables[name], match.group("spec"), match.group(0))
                )
            else:
                parts.append(match.group(0))

            index = match.end()

        parts.append(self.template[index:])
        return "".join(parts)

    def __repr__(self) -> str:
        return f"StringTemplate({self.template!r})"


def format_string(template: str, variables: Mapping[str, object]) -> str:
    """Render a template string against a variable dictionary.

    Args:
        template: Format string with ``%{name}`` / ``%{name|spec}`` placeholders.
        variables: Mapping of variable name to string or integer value.

    Returns:
        Rendered string.
    """
    return StringTemplate(template).render(variables)


__all__ = ["PLACEHOLDER_PATTERN", "StringTemplate", "format_string"]
