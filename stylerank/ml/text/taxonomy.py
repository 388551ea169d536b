"""
Fashion Taxonomy
Controlled vocabularies, synonym maps, and compatibility tables shared by
normalization, facet parsing, and attribute similarity.
"""

from typing import Dict, List, Tuple

# Synonym → canonical color
COLOR_MAP: Dict[str, str] = {
    "navy": "blue",
    "cobalt": "blue",
    "azure": "blue",
    "sky": "blue",
    "indigo": "blue",
    "turquoise": "blue",
    "teal": "blue",
    "crimson": "red",
    "scarlet": "red",
    "maroon": "red",
    "burgundy": "red",
    "grey": "gray",
    "charcoal": "gray",
    "silver": "gray",
    "fuchsia": "pink",
    "magenta": "pink",
    "coral": "pink",
    "beige": "brown",
    "khaki": "brown",
    "tan": "brown",
    "camel": "brown",
    "offwhite": "white",
    "ivory": "white",
    "cream": "white",
    "mint": "green",
    "olive": "green",
    "lavender": "purple",
}

# Synonym → canonical material ('denim' stays 'denim')
MATERIAL_MAP: Dict[str, str] = {
    "chiffon": "polyester",
    "jersey": "cotton",
    "leatherette": "synthetic",
    "pleather": "synthetic",
    "faux leather": "synthetic",
    "pu leather": "synthetic",
    "viscose": "polyester",
    "rayon": "polyester",
    "corduroy": "cotton",
    "flannel": "cotton",
    "velvet": "silk",
    "satin": "silk",
    "nylon": "synthetic",
    "spandex": "synthetic",
    "lycra": "synthetic",
}

# Canonical value sets
COLORS: List[str] = [
    "black",
    "white",
    "gray",
    "red",
    "yellow",
    "green",
    "blue",
    "purple",
    "pink",
    "brown",
]

MATERIALS: List[str] = [
    "cotton",
    "polyester",
    "wool",
    "leather",
    "synthetic",
    "suede",
    "denim",
    "canvas",
    "metal",
    "silk",
]

# Color harmony rules
COMPLEMENTARY_COLORS: Dict[str, List[str]] = {
    "red": ["green"],
    "blue": ["yellow"],
    "yellow": ["blue"],
    "green": ["red"],
    "purple": ["yellow"],
    "pink": ["green"],
}

ANALOGOUS_COLORS: Dict[str, List[str]] = {
    "red": ["pink", "brown"],
    "blue": ["purple", "green"],
    "yellow": ["green", "brown"],
    "green": ["blue", "yellow"],
    "purple": ["blue", "pink"],
    "pink": ["red", "purple"],
    "brown": ["red", "yellow"],
    "gray": ["blue", "purple"],
    "black": ["gray", "white"],
    "white": ["gray", "black"],
}

NEUTRAL_COLORS: List[str] = ["black", "white", "gray", "brown"]

# Materials that suit an occasion
MATERIAL_COMPATIBILITY: Dict[str, List[str]] = {
    "formal": ["silk", "wool", "leather", "cotton"],
    "casual": ["cotton", "denim", "polyester", "canvas"],
    "party": ["silk", "synthetic", "metal", "leather"],
    "sports": ["polyester", "synthetic", "cotton"],
    "winter": ["wool", "leather", "synthetic"],
    "summer": ["cotton", "linen", "silk", "canvas"],
    "premium": ["silk", "leather", "wool", "suede"],
    "durable": ["leather", "canvas", "denim", "polyester"],
}

PREMIUM_MATERIALS: List[str] = ["silk", "leather", "wool", "suede"]
CASUAL_MATERIALS: List[str] = ["cotton", "denim", "canvas"]
SYNTHETIC_MATERIALS: List[str] = ["polyester", "synthetic"]

# Occasions that pair well with each other
OCCASION_COMPATIBILITY: Dict[str, List[str]] = {
    "formal": ["office", "party", "wedding"],
    "casual": ["beach", "travel", "home"],
    "party": ["festive", "wedding"],
    "sports": ["gym", "travel", "casual"],
    "festive": ["wedding", "party"],
    "winter": ["formal", "casual"],
    "beach": ["summer", "casual", "travel"],
    "travel": ["casual", "beach"],
    "home": ["casual"],
}

# Query keywords that imply an occasion, checked in order
OCCASION_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("formal", ["formal", "office", "work"]),
    ("party", ["party", "evening", "cocktail"]),
    ("casual", ["casual", "everyday", "daily"]),
    ("sports", ["sport", "sports", "workout", "gym", "athleisure"]),
    ("festive", ["festive", "wedding", "ceremony"]),
    ("beach", ["beach", "summer", "vacation"]),
    ("winter", ["winter", "cold", "warm"]),
    ("travel", ["travel", "trip"]),
    ("home", ["home", "house", "indoor"]),
]

# Size groups per size system
SIZE_GROUPS: Dict[str, Dict[str, List[str]]] = {
    "clothing": {
        "small": ["xs", "s"],
        "medium": ["m", "l"],
        "large": ["xl", "xxl"],
    },
    "footwear": {
        "small": ["5uk", "6uk", "7uk"],
        "medium": ["8uk", "9uk", "10uk"],
        "large": ["11uk", "12uk"],
    },
    "accessories": {
        "onesize": ["one_size", "one size"],
    },
}

CLOTHING_SIZE_ORDER: List[str] = ["xs", "s", "m", "l", "xl", "xxl"]

# Brand tiers: (members, score when both brands share the tier)
BRAND_TIERS: Dict[str, tuple] = {
    "luxury": (["gucci", "ray-ban", "michael kors", "tommy hilfiger"], 0.7),
    "sports": (["nike", "adidas", "puma", "reebok"], 0.7),
    "casual": (["zara", "h&m", "levis"], 0.6),
    "affordable": (["bata", "fossil"], 0.6),
}

# Cross-category pairs that complete an outfit
OUTFIT_COMPATIBILITY: Dict[str, List[str]] = {
    "clothing": ["accessories", "footwear"],
    "footwear": ["clothing", "accessories"],
    "accessories": ["clothing", "footwear"],
}

# Category groups used for close-substitute tiering
CATEGORY_GROUPS: Dict[str, Dict[str, List[str]]] = {
    "footwear": {
        "core": ["sandals", "slippers", "sneakers", "loafers", "boots", "heels"],
        "related": ["running shoes", "sports shoes"],
    },
    "clothing": {
        "core": ["shirt", "t-shirt", "hoodie", "sweater", "jacket", "dress", "skirt"],
        "related": ["kurta", "saree", "jeans", "trousers"],
    },
    "accessories": {
        "core": ["watch", "handbag", "wallet", "belt", "sunglasses"],
        "related": ["jewelry", "hat", "cap", "scarf", "backpack"],
    },
}

# Style buckets used for broad-exploration tiering
STYLE_EXPANSION: Dict[str, List[str]] = {
    "sporty": ["sports", "gym", "casual", "athleisure"],
    "formal": ["office", "formal", "wedding", "party"],
    "casual": ["casual", "everyday", "beach", "travel"],
    "premium": ["luxury", "premium", "elegant"],
}

# Price bands used in search documents
PRICE_RANGES = [
    (1000, "budget"),
    (3000, "affordable"),
    (5000, "mid-range"),
    (8000, "premium"),
]
PRICE_RANGE_TOP = "luxury"
