from functools import lru_cache
from pathlib import Path

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"


@lru_cache(maxsize=None)
def load_prompt(prompt_name: str) -> str:
    """Read ``prompts/<prompt_name>``; templates are read from disk once per process."""
    return (PROMPTS_DIR / prompt_name).read_text(encoding="utf-8")
