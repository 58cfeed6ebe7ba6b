"""
Variable substitution: preview shows each registered token as a highlighted stand-in,
export leaves tokens verbatim for the downstream templating engine (Blade).
"""
import html
import re
from enum import Enum

from lettergen.variables import Variable


class SubstitutionMode(str, Enum):
    PREVIEW = "preview"
    EXPORT = "export"


STANDIN_CLASS = "variable-standin"
STANDIN_STYLE = "background-color: #fef9c3; color: #854d0e; border: 1px solid #fde047; border-radius: 2px; padding: 0 2px;"


def render_standin(variable: Variable) -> str:
    value = html.escape(variable.default_value or variable.key)
    # a default that looks like a token must not be picked up by a later pass
    value = value.replace("{", "&#123;").replace("}", "&#125;")
    return (
        f'<span class="{STANDIN_CLASS}" data-variable="{variable.key}" title="${variable.key}" '
        f'style="{STANDIN_STYLE}">{value}</span>'
    )


def _build_matcher(variables) -> re.Pattern | None:
    keys = [v.key for v in variables]
    if not keys:
        return None
    # Longest first so a key never shadows a longer key sharing its prefix
    alternatives = "|".join(re.escape(k) for k in sorted(set(keys), key=len, reverse=True))
    return re.compile(r"\{\{\s*\$(" + alternatives + r")\s*\}\}")


def substitute(markup: str, variables, mode: SubstitutionMode | str) -> str:
    """
    Replace registered tokens in markup according to mode.
    Preview: every match of a registered key becomes a stand-in carrying its default value
    (or the key when there is no default). One pass over the input, so substituted values are
    never scanned again. Export: markup is returned unchanged.
    Tokens whose key is not registered are left as they are in both modes.
    """
    markup = markup or ""
    if SubstitutionMode(mode) is SubstitutionMode.EXPORT:
        return markup
    matcher = _build_matcher(variables)
    if matcher is None:
        return markup
    by_key = {}
    for v in variables:
        by_key.setdefault(v.key, v)
    return matcher.sub(lambda m: render_standin(by_key[m.group(1)]), markup)
