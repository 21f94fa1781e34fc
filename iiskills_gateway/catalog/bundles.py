"""Bundle definitions: buying any member unlocks every member."""

BUNDLES: dict[str, dict] = {
    "ai-developer-bundle": {
        "id": "ai-developer-bundle",
        "name": "AI + Developer Bundle",
        "description": "Learn AI and Learn Developer - two apps for the price of one",
        "apps": ["learn-ai", "learn-developer"],
        # Prices in paise, GST included
        "price": {"introductory": 11682, "regular": 35282},
    },
}
