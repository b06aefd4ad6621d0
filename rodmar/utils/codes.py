"""Account code helpers"""
import re
import unicodedata


def normalize_name_to_code(name: str) -> str:
    """
    Turn an account display name into its code
    "Refácil Colombia" -> "REFACIL_COLOMBIA", "Cuentas Jhon" -> "CUENTAS_JHON"
    """
    if not name or not name.strip():
        raise ValueError("Name cannot be empty")

    # ñ keeps its letter instead of being stripped with the other diacritics
    text = name.replace("ñ", "N").replace("Ñ", "N")
    text = unicodedata.normalize("NFD", text)
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")

    text = text.upper()
    text = re.sub(r"\s+", "_", text)
    text = re.sub(r"[^A-Z0-9_]", "", text)
    text = re.sub(r"_+", "_", text).strip("_")

    if not text:
        raise ValueError(f"Could not derive an account code from name {name!r}")

    return text
