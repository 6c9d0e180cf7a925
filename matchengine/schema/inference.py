"""Subcategory inference from free-text product names.

Rules are ordered per category; the first pattern that matches the lowercased
name wins. Order matters: "jumpsuit" must be checked before "suit"-like
bottoms, "smart speaker" before "speaker", and so on.
"""

from __future__ import annotations

import re

SUBCATEGORY_RULES: dict[str, list[tuple[str, str]]] = {
    "Clothing": [
        (r"jumpsuit|romper|playsuit|overall", "Jumpsuits"),
        (r"dress|gown", "Dresses"),
        (r"jacket|coat|blazer|cardigan|hoodie|vest|parka|bomber|fleece", "Outerwear"),
        (r"legging|sports bra|yoga|athletic|gym|workout", "Activewear"),
        (r"bikini|swimsuit|swim|bathing|cover-up|rashguard", "Swimwear"),
        (r"bralette|bra|lingerie|bodysuit|corset|bustier", "Lingerie"),
        (r"lounge|sweatpant|jogger|robe|pajama|sleepwear", "Loungewear"),
        (r"pant|jean|short|skirt|trouser", "Bottoms"),
    ],
    "Footwear": [
        (r"sneaker|trainer|running|basketball|tennis", "Sneakers"),
        (r"heel|pump|stiletto", "Heels"),
        (r"boot|bootie|chelsea|combat|ankle boot", "Boots"),
        (r"loafer|penny|tassel|horsebit|driving", "Loafers"),
        (r"slide|pool|sport slide", "Slides"),
        (r"mule|clog|backless", "Mules"),
        (r"sandal|flip|gladiator|espadrille|wedge", "Sandals"),
    ],
    "Bags": [
        (r"tote", "Totes"),
        (r"crossbody|cross-body", "Crossbody"),
        (r"shoulder|hobo|baguette", "Shoulder"),
        (r"clutch|evening|minaudiere", "Clutches"),
        (r"backpack|rucksack", "Backpacks"),
        (r"belt bag|fanny|waist bag|sling", "Belt Bags"),
        (r"mini|micro|tiny|small bag", "Mini Bags"),
    ],
    "Jewelry": [
        (r"earring", "Earrings"),
        (r"necklace|pendant|chain|choker", "Necklaces"),
        (r"bracelet|bangle|cuff", "Bracelets"),
        (r"anklet|ankle", "Anklets"),
        (r"ring", "Rings"),
        (r"watch|smartwatch", "Watches"),
    ],
    "Accessories": [
        (r"hat|cap|beanie|fedora|bucket|visor", "Hats"),
        (r"scarf|shawl|wrap", "Scarves"),
        (r"belt", "Belts"),
        (r"scrunchie|clip|headband|barrette|hair", "Hair Accessories"),
        (r"sunglass|eyewear", "Sunglasses"),
        (r"sock", "Socks"),
        (r"wallet|card holder|cardholder", "Wallets"),
    ],
    "Beauty": [
        (r"lipstick|lip gloss|lip stain|lip oil|lip liner|lip balm", "Lipstick"),
        (r"foundation|concealer|primer|bb cream|cc cream|tinted moisturizer", "Foundation"),
        (r"moisturizer|serum|cleanser|toner|sunscreen|eye cream|face oil|mask|essence", "Skincare"),
        (r"perfume|fragrance|cologne|eau de|body mist", "Fragrance"),
        (r"nail polish|nail lacquer|gel polish|manicure", "Nail Polish"),
        (r"eyeshadow|mascara|eyeliner|brow|lash|eye primer", "Eye Makeup"),
        (
            r"shampoo|conditioner|hair mask|hair oil|styling|hair spray|mousse|dry shampoo",
            "Hair Products",
        ),
    ],
    "Tech": [
        (r"phone case|iphone case|case", "Phone Cases"),
        (r"headphone|over-ear|on-ear", "Headphones"),
        (r"earbud|airpod|wireless ear", "Earbuds"),
        (r"camera|dslr|mirrorless|point.?and.?shoot|action cam|gopro", "Cameras"),
        (r"tablet|ipad|galaxy tab|surface", "Tablets"),
        (r"laptop|macbook|chromebook|notebook|ultrabook", "Laptops"),
        (r"smart speaker|alexa|echo|google home|homepod", "Smart Speakers"),
        (r"speaker|bluetooth speaker|portable speaker|soundbar", "Speakers"),
        (r"gaming|controller|console|playstation|xbox|nintendo|game", "Gaming"),
        (r"e-reader|kindle|ebook|kobo|nook", "E-readers"),
        (r"power bank|portable charger|battery pack", "Power Banks"),
    ],
    "Home": [
        (r"candle", "Candles"),
        (r"mug|cup|tumbler", "Mugs"),
        (r"planter|pot|plant holder|plant stand", "Planters"),
        (r"blanket|throw|quilt|afghan", "Blankets"),
        (r"pillow|cushion", "Pillows"),
        (r"lamp|light|lighting|sconce|chandelier", "Lamps"),
        (r"rug|carpet|mat|runner", "Rugs"),
        (r"diffuser|oil diffuser|reed diffuser|aromatherapy", "Diffusers"),
        (r"storage|basket|bin|box|organizer|container", "Storage"),
        (r"vase|figurine|frame|mirror|decor|sculpture", "Decor"),
    ],
    "Stationery": [
        (r"notebook", "Notebooks"),
        (r"planner|agenda|calendar", "Planners"),
        (r"pen|pencil|marker|highlighter", "Pens"),
        (r"journal|diary", "Journals"),
        (r"desk|organizer|holder|tray|paperweight|stapler|tape", "Desk Accessories"),
    ],
    "Pet": [
        (r"collar", "Collars"),
        (r"leash|lead", "Leashes"),
        (r"toy|chew|ball|squeaky", "Pet Toys"),
        (r"bed|mat|cushion|crate", "Pet Beds"),
        (r"bowl|feeder|dish|fountain", "Pet Bowls"),
    ],
    "Fitness": [
        (r"yoga mat|exercise mat|fitness mat", "Yoga Mats"),
        (r"resistance band|exercise band|loop band", "Resistance Bands"),
        (r"weight|dumbbell|kettlebell|barbell", "Weights"),
        (r"gym bag|duffel|sports bag|workout bag", "Gym Bags"),
        (r"water bottle|shaker|hydration", "Water Bottles"),
    ],
}

_COMPILED_RULES: dict[str, list[tuple[re.Pattern[str], str]]] = {
    category: [(re.compile(pattern), subcategory) for pattern, subcategory in rules]
    for category, rules in SUBCATEGORY_RULES.items()
}


def match_subcategory(product_name: str, category: str) -> str | None:
    """Return the first subcategory whose rule matches, or None."""
    name = product_name.lower()
    for pattern, subcategory in _COMPILED_RULES.get(category, []):
        if pattern.search(name):
            return subcategory
    return None
