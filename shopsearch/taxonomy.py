"""Static lookup tables: brands, categories, vocabularies and shopping domains."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple

BRANDS: Tuple[str, ...] = (
    "samsung",
    "apple",
    "google",
    "xiaomi",
    "oneplus",
    "oppo",
    "vivo",
    "realme",
    "nokia",
    "motorola",
    "asus",
    "lenovo",
    "lg",
    "whirlpool",
    "bosch",
    "haier",
    "godrej",
    "voltas",
    "ifb",
    "panasonic",
    "sony",
    "bose",
    "jbl",
    "boat",
    "canon",
    "nikon",
    "philips",
    "dell",
    "hp",
    "acer",
    "msi",
)

# Product-line tokens that imply a brand on their own.
BRAND_ALIASES: Dict[str, str] = {
    "iphone": "apple",
    "ipad": "apple",
    "macbook": "apple",
    "airpods": "apple",
    "galaxy": "samsung",
    "pixel": "google",
    "redmi": "xiaomi",
    "poco": "xiaomi",
    "mi": "xiaomi",
    "nord": "oneplus",
    "bravia": "sony",
    "thinkpad": "lenovo",
    "ideapad": "lenovo",
    "pavilion": "hp",
    "inspiron": "dell",
    "xps": "dell",
}

# Terms appended to the synonym-expanded variant when a brand is present.
BRAND_EXPANSIONS: Dict[str, Tuple[str, ...]] = {
    "apple": ("iphone", "ipad", "macbook", "airpods"),
    "samsung": ("galaxy",),
    "google": ("pixel",),
    "oneplus": ("one plus", "nord"),
    "xiaomi": ("mi", "redmi", "poco"),
    "oppo": ("reno", "find x"),
    "vivo": ("x series", "v series"),
}

SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "phone": ("smartphone", "mobile"),
    "mobile": ("smartphone", "phone"),
    "smartphone": ("phone", "mobile"),
    "laptop": ("notebook", "computer"),
    "headphone": ("earphone", "earbud", "headset"),
    "tv": ("television", "smart tv"),
    "television": ("tv", "smart tv"),
    "tablet": ("ipad", "android tablet"),
    "watch": ("smartwatch", "fitness tracker"),
    "fridge": ("refrigerator",),
    "refrigerator": ("fridge",),
    "ac": ("air conditioner",),
}

MISSPELLINGS: Dict[str, str] = {
    "samsun": "samsung",
    "samsumg": "samsung",
    "samung": "samsung",
    "iphne": "iphone",
    "iphon": "iphone",
    "ifone": "iphone",
    "aple": "apple",
    "one plus": "oneplus",
    "xiomi": "xiaomi",
    "xaomi": "xiaomi",
    "redme": "redmi",
    "motorolla": "motorola",
    "lenova": "lenovo",
    "nokiya": "nokia",
    "laptap": "laptop",
    "labtop": "laptop",
    "hedphones": "headphones",
    "headfones": "headphones",
    "smartphon": "smartphone",
    "mobail": "mobile",
    "refrigirator": "refrigerator",
    "refridgerator": "refrigerator",
    "washingmachine": "washing machine",
    "televison": "television",
}

COLLOQUIAL_PHRASES: Dict[str, str] = {
    "i want": "need",
    "looking for": "need",
    "show me": "need",
    "must have": "essential",
    "nice to have": "preferred",
}

PLURALS: Dict[str, str] = {
    "phones": "phone",
    "smartphones": "smartphone",
    "mobiles": "mobile",
    "laptops": "laptop",
    "headphones": "headphone",
    "earphones": "earphone",
    "earbuds": "earbud",
    "watches": "watch",
    "smartwatches": "smartwatch",
    "tablets": "tablet",
    "cameras": "camera",
    "speakers": "speaker",
    "televisions": "television",
    "tvs": "tv",
    "refrigerators": "refrigerator",
    "fridges": "fridge",
    "machines": "machine",
    "monitors": "monitor",
    "computers": "computer",
    "desktops": "desktop",
}

COLORS: Dict[str, str] = {
    "black": "black",
    "white": "white",
    "blue": "blue",
    "red": "red",
    "green": "green",
    "yellow": "yellow",
    "pink": "pink",
    "purple": "purple",
    "violet": "purple",
    "gold": "gold",
    "silver": "silver",
    "gray": "gray",
    "grey": "gray",
    "graphite": "gray",
    "bronze": "bronze",
    "mint": "green",
    "cream": "cream",
}

STOPWORDS = frozenset(
    {
        "a",
        "an",
        "and",
        "the",
        "for",
        "with",
        "of",
        "in",
        "on",
        "to",
        "or",
        "my",
        "me",
        "need",
        "best",
        "top",
        "good",
        "great",
        "excellent",
        "decent",
        "new",
        "latest",
        "cheap",
        "buy",
        "price",
        "online",
        "max",
        "min",
        "target",
        "range",
        "thousand",
        "lakh",
        "crore",
        "rupees",
        "essential",
        "preferred",
    }
)

ACCESSORY_EXCLUSIONS: Tuple[str, ...] = (
    "case",
    "cover",
    "protector",
    "screen guard",
    "tempered glass",
    "charger",
    "cable",
    "adapter",
    "stand",
    "holder",
    "mount",
    "accessory",
    "accessories",
    "spare",
    "replacement",
    "parts",
)

INFORMATIONAL_EXCLUSIONS: Tuple[str, ...] = (
    "specs",
    "specifications",
    "support",
    "help",
    "review",
    "compare",
    "news",
    "blog",
    "manual",
    "download",
)

SHOPPING_INTENT_TERMS: Tuple[str, ...] = ("buy", "shop", "price", "purchase")


@dataclass(frozen=True)
class PriceBand:
    min: float
    max: float
    optimal: float


@dataclass(frozen=True)
class CategoryProfile:
    id: str
    label: str
    description: str
    keywords: Tuple[str, ...]
    brands: Tuple[str, ...]
    model_patterns: Dict[str, Tuple[str, ...]]
    price_band: PriceBand
    feature_keywords: Tuple[str, ...]
    exclusive_patterns: Tuple[str, ...]
    specification_keywords: Tuple[str, ...]
    semantic_primary: Tuple[str, ...]
    semantic_secondary: Tuple[str, ...]
    semantic_exclusion: Tuple[str, ...]
    image_keywords: Tuple[str, ...] = field(default=())


CATEGORIES: Dict[str, CategoryProfile] = {
    "mobile_phones": CategoryProfile(
        id="mobile_phones",
        label="Mobile Phones",
        description=(
            "smartphones and mobile phones such as samsung galaxy, apple iphone, google pixel, "
            "oneplus and redmi handsets with camera, battery, display, 5g and storage options"
        ),
        keywords=(
            "phone",
            "smartphone",
            "mobile",
            "cell phone",
            "galaxy",
            "iphone",
            "pixel",
            "oneplus",
            "redmi",
            "android",
            "5g",
        ),
        brands=(
            "samsung",
            "apple",
            "google",
            "oneplus",
            "xiaomi",
            "oppo",
            "vivo",
            "realme",
            "nokia",
            "motorola",
        ),
        model_patterns={
            "samsung": ("galaxy s", "galaxy a", "galaxy m", "galaxy f", "galaxy z", "galaxy note"),
            "apple": ("iphone",),
            "google": ("pixel",),
            "oneplus": ("oneplus", "nord"),
            "xiaomi": ("redmi", "poco", "mi"),
            "oppo": ("reno", "find x", "oppo a", "oppo f"),
            "vivo": ("vivo x", "vivo v", "vivo y", "vivo t"),
            "realme": ("realme", "narzo"),
            "motorola": ("moto g", "moto e", "edge"),
        },
        price_band=PriceBand(min=5000, max=150000, optimal=25000),
        feature_keywords=("camera", "battery", "display", "processor", "ram", "megapixel", "mah", "5g", "selfie"),
        exclusive_patterns=(
            r"\bsmart ?phones?\b",
            r"\bmobile phones?\b",
            r"\biphone\s*\d",
            r"\bgalaxy\s+[sazmf]\d",
            r"\bpixel\s*\d",
        ),
        specification_keywords=("ram", "storage", "camera", "battery", "display", "processor", "mah", "mp", "5g"),
        semantic_primary=("smartphone", "mobile", "phone", "cellular", "5g", "android", "ios"),
        semantic_secondary=("camera", "battery", "display", "processor", "storage", "ram"),
        semantic_exclusion=("case", "cover", "charger", "cable", "screen guard", "tempered glass"),
        image_keywords=("mobile", "phone", "smartphone", "galaxy", "iphone", "pixel"),
    ),
    "home_appliances": CategoryProfile(
        id="home_appliances",
        label="Home Appliances",
        description=(
            "household appliances for daily use like washing machines, refrigerators, microwave "
            "ovens, dishwashers, dryers, air conditioners, water purifiers and vacuum cleaners"
        ),
        keywords=(
            "washing machine",
            "refrigerator",
            "fridge",
            "microwave",
            "dishwasher",
            "dryer",
            "oven",
            "stove",
            "air conditioner",
            "ac",
            "water purifier",
            "vacuum cleaner",
        ),
        brands=("samsung", "lg", "whirlpool", "bosch", "haier", "godrej", "voltas", "ifb", "panasonic"),
        model_patterns={
            "lg": ("front load", "top load", "double door"),
            "samsung": ("ecobubble", "digital inverter", "convertible"),
            "whirlpool": ("stainwash", "intellifresh"),
            "bosch": ("serie",),
        },
        price_band=PriceBand(min=2000, max=100000, optimal=15000),
        feature_keywords=("capacity", "energy", "star", "inverter", "litre", "kg", "load", "frost free"),
        exclusive_patterns=(
            r"\bwashing machines?\b",
            r"\brefrigerators?\b",
            r"\bfridges?\b",
            r"\bmicrowaves?\b",
            r"\bdishwashers?\b",
            r"\bair conditioners?\b",
            r"\b(?:front|top) load\b",
        ),
        specification_keywords=("capacity", "kg", "litre", "star", "energy", "inverter", "rpm", "ton"),
        semantic_primary=("washing", "refrigerator", "fridge", "microwave", "dishwasher", "appliance", "conditioner"),
        semantic_secondary=("capacity", "energy", "inverter", "load", "litre", "star"),
        semantic_exclusion=("cover", "stand", "spare", "part", "pipe"),
        image_keywords=("washing", "fridge", "refrigerator", "appliance", "microwave", "ac"),
    ),
    "electronics": CategoryProfile(
        id="electronics",
        label="Electronics",
        description=(
            "consumer electronics including televisions, smart tv, monitors, speakers, soundbars, "
            "headphones, earbuds, cameras, smartwatches and gaming consoles"
        ),
        keywords=(
            "tv",
            "television",
            "monitor",
            "speaker",
            "soundbar",
            "headphone",
            "earbud",
            "earphone",
            "camera",
            "smartwatch",
            "gaming console",
        ),
        brands=("sony", "samsung", "lg", "bose", "jbl", "boat", "canon", "nikon", "philips", "apple"),
        model_patterns={
            "sony": ("bravia", "wh-", "wf-", "alpha"),
            "bose": ("quietcomfort", "soundlink"),
            "jbl": ("flip", "charge", "tune"),
            "canon": ("eos",),
            "apple": ("airpods", "apple watch"),
        },
        price_band=PriceBand(min=1000, max=50000, optimal=8000),
        feature_keywords=("wireless", "bluetooth", "noise cancelling", "4k", "hdr", "bass", "resolution", "anc"),
        exclusive_patterns=(
            r"\btelevisions?\b",
            r"\bsmart tv\b",
            r"\bsoundbars?\b",
            r"\bheadphones?\b",
            r"\bearbuds?\b",
            r"\bdslr\b",
        ),
        specification_keywords=("inch", "resolution", "hz", "watt", "bluetooth", "battery", "driver", "megapixel"),
        semantic_primary=("television", "tv", "speaker", "headphone", "audio", "earbud", "camera"),
        semantic_secondary=("wireless", "bluetooth", "noise", "resolution", "hdr", "bass"),
        semantic_exclusion=("case", "cover", "stand", "mount", "cable"),
        image_keywords=("tv", "television", "speaker", "headphone", "audio", "camera"),
    ),
    "computers": CategoryProfile(
        id="computers",
        label="Computers",
        description=(
            "laptops, desktops, tablets, notebooks and computers such as macbook, chromebook, "
            "thinkpad and gaming pc with processor, ram, ssd storage and display"
        ),
        keywords=(
            "laptop",
            "desktop",
            "tablet",
            "computer",
            "pc",
            "macbook",
            "chromebook",
            "notebook",
            "ipad",
        ),
        brands=("apple", "dell", "hp", "lenovo", "asus", "acer", "msi", "samsung"),
        model_patterns={
            "apple": ("macbook air", "macbook pro", "ipad", "imac"),
            "dell": ("xps", "inspiron", "latitude", "alienware"),
            "hp": ("pavilion", "envy", "victus", "omen"),
            "lenovo": ("thinkpad", "ideapad", "legion", "yoga"),
            "asus": ("vivobook", "zenbook", "rog", "tuf"),
            "acer": ("aspire", "nitro", "predator", "swift"),
            "samsung": ("galaxy book", "galaxy tab"),
        },
        price_band=PriceBand(min=15000, max=300000, optimal=60000),
        feature_keywords=("processor", "ram", "ssd", "gpu", "display", "intel", "ryzen", "core i5", "core i7"),
        exclusive_patterns=(
            r"\blaptops?\b",
            r"\bdesktops?\b",
            r"\bmacbook\b",
            r"\bchromebook\b",
            r"\bgaming pc\b",
        ),
        specification_keywords=("processor", "ram", "ssd", "hdd", "gpu", "inch", "intel", "ryzen"),
        semantic_primary=("laptop", "computer", "desktop", "notebook", "macbook", "tablet", "pc"),
        semantic_secondary=("processor", "ram", "ssd", "display", "graphics", "keyboard"),
        semantic_exclusion=("bag", "sleeve", "skin", "charger", "adapter"),
        image_keywords=("laptop", "notebook", "computer", "macbook", "desktop"),
    ),
}

DEFAULT_CATEGORY = "electronics"

SHOPPING_DOMAINS: Tuple[str, ...] = (
    "flipkart.com",
    "amazon.in",
    "snapdeal.com",
    "paytmmall.com",
    "myntra.com",
    "ajio.com",
    "nykaa.com",
    "croma.com",
    "tatacliq.com",
    "shopclues.com",
    "vijaysales.com",
    "sangeethamobiles.com",
    "poorvika.com",
    "reliancedigital.in",
    "reliance-digital.com",
    "amazon.com",
    "ebay.com",
    "walmart.com",
    "bestbuy.com",
    "samsung.com",
    "apple.com",
    "mi.com",
    "oneplus.in",
    "store.google.com",
)

BLOCKED_DOMAINS: Tuple[str, ...] = (
    "reddit.com",
    "quora.com",
    "stackoverflow.com",
    "github.com",
    "medium.com",
    "wordpress.com",
    "blogspot.com",
    "youtube.com",
    "facebook.com",
    "twitter.com",
    "x.com",
    "instagram.com",
    "linkedin.com",
    "pinterest.com",
    "tiktok.com",
    "wikipedia.org",
)

BLOCKED_DOMAIN_TOKENS: Tuple[str, ...] = ("blog", "news", "forum", "forums", "community", "wiki")

MANUFACTURER_DOMAINS: Tuple[str, ...] = (
    "samsung.com",
    "apple.com",
    "mi.com",
    "oneplus.in",
    "store.google.com",
    "lg.com",
    "sony.co.in",
)

SELLER_REPUTATION: Dict[str, float] = {
    "amazon.in": 0.98,
    "flipkart.com": 0.95,
    "croma.com": 0.90,
    "reliancedigital.in": 0.88,
    "tatacliq.com": 0.87,
    "snapdeal.com": 0.85,
    "vijaysales.com": 0.85,
    "paytmmall.com": 0.82,
    "myntra.com": 0.80,
    "shopclues.com": 0.75,
}

REGIONAL_SUFFIXES: Dict[str, Tuple[str, ...]] = {
    "in": (".in", ".co.in"),
    "us": (".com", ".us"),
    "uk": (".co.uk", ".uk"),
}

REGIONAL_RETAILERS: Dict[str, Tuple[str, ...]] = {
    "in": (
        "flipkart.com",
        "snapdeal.com",
        "croma.com",
        "tatacliq.com",
        "vijaysales.com",
        "paytmmall.com",
        "shopclues.com",
        "myntra.com",
        "poorvika.com",
        "sangeethamobiles.com",
    ),
}

SUGGESTIONS: Tuple[str, ...] = (
    "smartphone",
    "laptop",
    "headphones",
    "camera",
    "gaming console",
    "fitness tracker",
    "smartwatch",
    "tablet",
    "wireless earbuds",
    "bluetooth speaker",
)

TRENDING: Tuple[str, ...] = (
    "iPhone 15",
    "MacBook Pro",
    "Sony WH-1000XM5",
    "Nintendo Switch",
    "Samsung Galaxy S24",
    "AirPods Pro",
    "iPad Air",
    "GoPro Hero 12",
    "Fitbit Charge 6",
    "PlayStation 5",
)


def get_category(category_id: str | None) -> CategoryProfile:
    return CATEGORIES.get(category_id or "", CATEGORIES[DEFAULT_CATEGORY])


def is_known_category(category_id: str | None) -> bool:
    return bool(category_id) and category_id in CATEGORIES
