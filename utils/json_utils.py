import re

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", flags=re.DOTALL)


def strip_code_fences(raw_output: str) -> str:
    """Remove markdown code fences LLMs sometimes wrap JSON in."""
    return _FENCE_PATTERN.sub("", raw_output.strip())
