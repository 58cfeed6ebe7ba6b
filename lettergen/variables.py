"""
Variable registry and placeholder tokens.

A variable is referenced from any fragment by the token `{{ $key }}`. Whitespace inside the
braces is tolerated when reading; the canonical form written by the editor has single spaces.
The registry is an ordered tuple of Variable values: first registration of a key wins.
"""
import re
import uuid

from pydantic import BaseModel, ConfigDict, field_validator

KEY_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
# Any token, registered or not
TOKEN_PATTERN = re.compile(r"\{\{\s*\$([A-Za-z0-9_]+)\s*\}\}")
_KEY_CLEAN = re.compile(r"[^A-Za-z0-9_]")


class Variable(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    key: str
    label: str = ""
    default_value: str = ""

    @field_validator("key")
    @classmethod
    def _check_key(cls, v: str) -> str:
        if not KEY_PATTERN.match(v or ""):
            raise ValueError(f"Variable key must match [A-Za-z0-9_]+, got {v!r}")
        return v


def clean_key(name: str) -> str:
    """Drop everything outside [A-Za-z0-9_] (e.g. 'nomor surat!' -> 'nomorsurat')."""
    return _KEY_CLEAN.sub("", name or "")


def canonical_token(key: str) -> str:
    return "{{ $" + key + " }}"


def token_pattern_for(key: str) -> re.Pattern:
    """Token matcher for one key, tolerant of irregular whitespace inside the braces."""
    return re.compile(r"\{\{\s*\$" + re.escape(key) + r"\s*\}\}")


def find_tokens(markup: str) -> list[str]:
    """Keys referenced by tokens in markup, in order of first appearance."""
    seen = []
    for m in TOKEN_PATTERN.finditer(markup or ""):
        if m.group(1) not in seen:
            seen.append(m.group(1))
    return seen


def new_variable(key: str, label: str | None = None, default_value: str | None = None) -> Variable:
    """Build a Variable the way the editor does when a key is first inserted."""
    return Variable(
        id=f"var-{uuid.uuid4().hex[:8]}",
        key=key,
        label=label if label is not None else key.replace("_", " "),
        default_value=default_value if default_value is not None else f"[{key}]",
    )


def get_variable(variables: tuple[Variable, ...], key: str) -> Variable | None:
    for v in variables:
        if v.key == key:
            return v
    return None


def register(variables: tuple[Variable, ...], variable: Variable) -> tuple[Variable, ...]:
    """Append variable unless its key is already registered (existing metadata is kept)."""
    if get_variable(variables, variable.key) is not None:
        return tuple(variables)
    return tuple(variables) + (variable,)


def update_variable(variables: tuple[Variable, ...], key: str, **fields) -> tuple[Variable, ...]:
    """Edit label / default_value of one variable. Unknown key raises KeyError."""
    if get_variable(variables, key) is None:
        raise KeyError(key)
    allowed = {k: v for k, v in fields.items() if k in ("label", "default_value") and v is not None}
    return tuple(v.model_copy(update=allowed) if v.key == key else v for v in variables)


def remove_variable(variables: tuple[Variable, ...], key: str) -> tuple[Variable, ...]:
    return tuple(v for v in variables if v.key != key)


def rename_key(variables: tuple[Variable, ...], old_key: str, new_key: str) -> tuple[Variable, ...]:
    """Rename a registry entry. Fails if new_key is invalid or already taken."""
    if get_variable(variables, old_key) is None:
        raise KeyError(old_key)
    if not KEY_PATTERN.match(new_key or ""):
        raise ValueError(f"Variable key must match [A-Za-z0-9_]+, got {new_key!r}")
    if new_key != old_key and get_variable(variables, new_key) is not None:
        raise ValueError(f"Variable {new_key!r} already exists")
    return tuple(v.model_copy(update={"key": new_key}) if v.key == old_key else v for v in variables)


def rewrite_tokens(markup: str, old_key: str, new_key: str) -> str:
    """Point every token of old_key at new_key, normalising it to the canonical form."""
    return token_pattern_for(old_key).sub(lambda _m: canonical_token(new_key), markup or "")
