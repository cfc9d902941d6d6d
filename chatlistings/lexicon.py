"""
Domain vocabulary for Indian residential/commercial property chatter.

Shared by the relevance classifier and the rule-based field extractor.
"""
import re
from typing import Dict, Iterable, List, Optional, Tuple


def word_pattern(words: Iterable[str]) -> re.Pattern:
    """Case-insensitive whole-word alternation, longest phrases first."""
    ordered = sorted(set(words), key=len, reverse=True)
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in ordered) + r")\b", re.I)


# First match wins, so multi-word and specific types come before generic ones
PROPERTY_TYPE_TABLE: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\b(apartment|flat|unit)s?\b", re.I), "apartment"),
    (re.compile(r"\b(villa|bungalow|independent\s+house)s?\b", re.I), "villa"),
    (re.compile(r"\b(house|home)s?\b", re.I), "house"),
    (re.compile(r"\b(penthouse)s?\b", re.I), "penthouse"),
    (re.compile(r"\b(studio)s?\b", re.I), "studio"),
    (re.compile(r"\b(duplex)\b", re.I), "duplex"),
    (re.compile(r"\b(plot|land)s?\b", re.I), "plot"),
    (re.compile(r"\b(office|commercial)\b", re.I), "commercial"),
    (re.compile(r"\b(warehouse|godown)s?\b", re.I), "warehouse"),
    (re.compile(r"\b(shop|showroom)s?\b", re.I), "retail"),
    (re.compile(r"\b(pg|paying\s+guest)\b", re.I), "pg"),
    (re.compile(r"\b(hostel)s?\b", re.I), "hostel"),
]

PROPERTY_TYPE_WORDS = [
    "apartment", "apartments", "flat", "flats", "villa", "villas", "bungalow",
    "independent house", "house", "penthouse", "studio", "duplex", "plot", "plots",
    "land", "office", "office space", "commercial space", "shop", "showroom",
    "warehouse", "godown", "pg", "paying guest", "hostel", "property", "properties",
    "row house", "builder floor", "farmhouse", "bhk", "1rk", "rk",
]

TRANSACTION_WORDS = [
    "sale", "sell", "selling", "resale", "buy", "buyer", "purchase", "rent",
    "rental", "lease", "leased", "tenant", "tenants", "to let", "letting",
    "investment", "possession", "ready to move", "deposit",
    "owner", "brokerage",
]

RENT_KEYWORDS_RE = re.compile(
    r"\b(rent|rental|lease|monthly|per month|tenant|letting)\b|/month\b", re.I
)
SALE_KEYWORDS_RE = re.compile(
    r"\b(sale|sell|selling|buy|purchase|investment|lakhs?|crores?|own|ownership)\b", re.I
)

AMENITIES = [
    "parking", "car parking", "bike parking", "covered parking",
    "swimming pool", "pool", "gym", "fitness center", "fitness",
    "security", "24/7 security", "cctv", "gated community",
    "lift", "elevator", "garden", "park", "playground",
    "balcony", "terrace", "rooftop", "club house", "clubhouse",
    "power backup", "generator", "inverter", "solar",
    "water supply", "bore well", "tank", "wifi", "internet",
    "school", "hospital", "metro", "bus stop", "mall",
    "ac", "air conditioning", "furnished", "semi-furnished",
    "modular kitchen", "modern kitchen", "wardrobe", "cupboard",
]

PRICE_WORDS = [
    "price", "budget", "cost", "rate", "lakh", "lakhs", "lac", "lacs", "crore",
    "crores", "cr", "rs", "inr", "rupees", "negotiable", "per sqft", "per month",
    "emi", "loan",
]

CONTACT_WORDS = [
    "contact", "call", "whatsapp", "dm", "inbox", "interested", "enquiry",
    "inquiry", "reach out", "ping", "site visit",
    "broker", "agent", "dealer",
]

# City -> localities, in lookup priority order (localities before city names)
GAZETTEER: Dict[str, List[str]] = {
    "Bengaluru": [
        "koramangala", "whitefield", "hsr layout", "hsr", "indiranagar", "electronic city",
        "jayanagar", "hebbal", "sarjapur", "marathahalli", "banashankari", "jp nagar",
        "btm layout", "btm", "yelahanka", "rajajinagar", "malleswaram", "basavanagudi",
        "frazer town", "richmond town", "mg road", "brigade road", "commercial street",
        "silk board", "bommanahalli", "electronic city phase 1", "electronic city phase 2",
        "bagalur", "devanahalli", "kengeri", "rajarajeshwari nagar", "rr nagar",
        "vijayanagar", "magadi road", "mysore road", "tumkur road", "hebbal flyover",
        "outer ring road", "orr", "sarjapur road", "hosur road", "old airport road",
        "bellandur", "kasavanahalli", "kadugodi", "varthur", "mahadevapura",
    ],
    "Mumbai": [
        "bandra", "andheri", "powai", "borivali", "malad", "goregaon", "kandivali",
        "juhu", "versova", "lokhandwala", "bandra kurla complex", "bkc", "lower parel",
        "worli", "colaba", "nariman point", "churchgate", "marine drive",
        "thane", "navi mumbai", "vashi", "kharghar", "panvel", "kalyan", "dombivli",
    ],
    "Delhi": [
        "gurgaon", "gurugram", "noida", "faridabad", "ghaziabad", "dwarka", "rohini",
        "janakpuri", "lajpat nagar", "connaught place", "karol bagh", "rajouri garden",
        "pitampura", "shalimar bagh", "model town", "civil lines", "vasant kunj",
        "vasant vihar", "greater kailash", "defence colony", "friends colony",
    ],
    "Chennai": [
        "t nagar", "adyar", "besant nagar", "velachery", "tambaram", "chromepet",
        "omr", "ecr", "anna nagar", "guindy", "mylapore", "triplicane", "egmore",
    ],
    "Pune": [
        "koregaon park", "kalyani nagar", "viman nagar", "aundh", "baner", "wakad",
        "hinjewadi", "magarpatta", "kothrud", "karve nagar", "shivajinagar",
    ],
    "Hyderabad": [
        "hitech city", "gachibowli", "kondapur", "jubilee hills", "banjara hills",
        "madhapur", "secunderabad", "begumpet", "ameerpet", "kukatpally",
    ],
}

CITY_ALIASES: Dict[str, str] = {
    "bangalore": "Bengaluru", "bengaluru": "Bengaluru",
    "mumbai": "Mumbai", "bombay": "Mumbai",
    "delhi": "Delhi", "new delhi": "Delhi",
    "chennai": "Chennai", "pune": "Pune", "hyderabad": "Hyderabad",
    "kolkata": "Kolkata", "ahmedabad": "Ahmedabad", "jaipur": "Jaipur",
    "chandigarh": "Chandigarh", "lucknow": "Lucknow", "kanpur": "Kanpur",
    "nagpur": "Nagpur", "indore": "Indore", "bhopal": "Bhopal",
    "visakhapatnam": "Visakhapatnam", "kochi": "Kochi",
    "thiruvananthapuram": "Thiruvananthapuram", "coimbatore": "Coimbatore",
    "madurai": "Madurai", "vijayawada": "Vijayawada",
}


def _build_places() -> List[Tuple[str, str, re.Pattern]]:
    places = []
    for city, areas in GAZETTEER.items():
        # Longer names first so "electronic city phase 1" beats "electronic city"
        for area in sorted(areas, key=len, reverse=True):
            places.append((area, city, re.compile(r"\b" + re.escape(area) + r"\b", re.I)))
    for alias, city in CITY_ALIASES.items():
        places.append((alias, city, re.compile(r"\b" + re.escape(alias) + r"\b", re.I)))
    return places


PLACES = _build_places()
PLACE_NAMES = [name for name, _, _ in PLACES]


def find_place(text: str) -> Optional[Tuple[str, str]]:
    """First gazetteer place mentioned in text as (place, city)."""
    if not text:
        return None
    for name, city, pattern in PLACES:
        if pattern.search(text):
            return name, city
    return None


def city_for(place: str) -> Optional[str]:
    key = (place or "").strip().lower()
    if key in CITY_ALIASES:
        return CITY_ALIASES[key]
    for city, areas in GAZETTEER.items():
        if key in areas:
            return city
    return None
