"""
JSON parsing for model responses. Encapsulated in a class.
"""
import json
import re


class JsonParser:
    """
    Handles parsing JSON from LLM responses: escape newlines, repair truncated JSON,
    strip markdown fences, and extract valid JSON.
    """

    @staticmethod
    def _escape_newlines_in_json_strings(s: str) -> str:
        """Replace raw newlines and tabs inside JSON string values with \\n and \\t."""
        result = []
        in_string = False
        escape = False
        for c in s:
            if not in_string:
                result.append(c)
                if c == '"':
                    in_string = True
                continue
            if escape:
                result.append(c)
                escape = False
                continue
            if c == "\\":
                result.append(c)
                escape = True
                continue
            if c == '"':
                result.append(c)
                in_string = False
                continue
            result.append({"\n": "\\n", "\r": "\\r", "\t": "\\t"}.get(c, c))
        return "".join(result)

    @staticmethod
    def _repair_truncated_json(s: str) -> str:
        """Attempt to close truncated JSON by appending missing ] and }."""
        s = s.rstrip()
        if not s:
            return s
        open_braces = s.count("{") - s.count("}")
        open_brackets = s.count("[") - s.count("]")
        if open_brackets > 0 or open_braces > 0:
            s += "]" * max(open_brackets, 0) + "}" * max(open_braces, 0)
        return s

    @staticmethod
    def _drop_trailing_commas(s: str) -> str:
        return re.sub(r",\s*}", "}", re.sub(r",\s*]", "]", s))

    @classmethod
    def _try_parse(cls, s: str):
        """Try json.loads; fix trailing commas, unescaped newlines, and truncated JSON."""
        escaped = cls._escape_newlines_in_json_strings(s)
        candidates = (
            s,
            cls._drop_trailing_commas(s),
            escaped,
            cls._drop_trailing_commas(escaped),
            cls._repair_truncated_json(s),
            cls._repair_truncated_json(escaped),
        )
        for candidate in candidates:
            try:
                return json.loads(candidate)
            except json.JSONDecodeError:
                continue
        return None

    @classmethod
    def extract_json_from_llm(cls, response: str):
        """Parse JSON from LLM response. Handles markdown fences, trailing commas, unescaped newlines."""
        if not response or not response.strip():
            raise ValueError("LLM returned empty response.")
        text = response.strip()
        if "```" in text:
            start = text.find("```")
            if text[start:].startswith("```json"):
                start += 7
            else:
                start = text.find("\n", start) + 1 if "\n" in text[start:] else start + 3
            end = text.rfind("```")
            if end > start:
                text = text[start:end].strip()
        for start_char in ("{", "["):
            pos = text.find(start_char)
            if pos >= 0:
                text = text[pos:].strip()
                break
        parsed = cls._try_parse(text)
        if parsed is not None:
            return parsed
        raise ValueError("LLM did not return valid JSON.")
