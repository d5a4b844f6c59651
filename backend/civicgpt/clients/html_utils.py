import re
from typing import Optional

_ENTITIES = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": "\"",
    "&#39;": "'",
}


def strip_html(html: Optional[str]) -> str:
    """Reduce bill text / memo HTML to plain text, keeping paragraph breaks."""
    if not html:
        return ""
    text = re.sub(r"<style[^>]*>.*?</style>", "", html, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r"<script[^>]*>.*?</script>", "", text, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"</p>", "\n\n", text, flags=re.IGNORECASE)
    text = re.sub(r"</(div|li)>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)

    for entity, char in _ENTITIES.items():
        text = text.replace(entity, char)

    text = text.replace("\r\n", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    return text.strip()


def extract_full_text(bill: dict) -> Optional[str]:
    """Pick the active amendment's full text from a live-API bill record."""
    items = (bill.get("amendments") or {}).get("items")
    if not isinstance(items, dict):
        return None
    active = bill.get("activeVersion") or ""
    for key in [active, *(k for k in items if k != active)]:
        amendment = items.get(key)
        if not amendment:
            continue
        if amendment.get("fullTextHtml"):
            return amendment["fullTextHtml"]
        if amendment.get("fullText"):
            return amendment["fullText"]
    return None
