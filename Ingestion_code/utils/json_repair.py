# utils/json_repair.py
import re

FENCED_OBJECT = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)


def repair_json(text: str) -> str:
    """
    Do simple repairs: remove markdown fences, text around the object, trailing commas.
    This is a lightweight pre-clean for LLM outputs.
    """
    if not text:
        return text
    fenced = FENCED_OBJECT.search(text)
    if fenced:
        t = fenced.group(1).strip()
    else:
        t = text.replace("```json", "").replace("```", "").strip()
    # isolate outermost JSON object
    first, last = t.find("{"), t.rfind("}")
    if first != -1 and last > first:
        t = t[first:last + 1]
    # trailing commas
    t = re.sub(r",(\s*[\]}])", r"\1", t)
    return t
