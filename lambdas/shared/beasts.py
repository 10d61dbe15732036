"""Beast classification derived from beast ids.

Ids 1-25 are Magic beasts, 26-50 Hunters and 51-75 Brutes. Within each
family every block of five ids shares a tier, strongest first.
"""

BEAST_FAMILIES: dict[str, tuple[str, str]] = {
    # family: (attack type, armor type)
    "Magic": ("Magic", "Cloth"),
    "Hunter": ("Blade", "Hide"),
    "Brute": ("Bludgeon", "Metal"),
}


def beast_type(beast_id: int) -> str:
    """Get the beast family (Magic, Hunter, Brute or None)."""
    if 1 <= beast_id <= 25:
        return "Magic"
    if 26 <= beast_id <= 50:
        return "Hunter"
    if 51 <= beast_id <= 75:
        return "Brute"
    return "None"


def beast_attack_type(beast_id: int) -> str:
    """Get the damage type a beast deals."""
    family = BEAST_FAMILIES.get(beast_type(beast_id))
    return family[0] if family else "None"


def beast_armor_type(beast_id: int) -> str:
    """Get the armor material a beast wears."""
    family = BEAST_FAMILIES.get(beast_type(beast_id))
    return family[1] if family else "None"


def beast_tier(beast_id: int) -> int:
    """Get beast tier (1 strongest, 5 weakest)."""
    offset = (beast_id - 1) % 25
    return offset // 5 + 1


def beast_name(beast_id: int) -> str:
    """Display name for a beast id."""
    if beast_id <= 0:
        return "No beast"
    return f"Beast #{beast_id}"
