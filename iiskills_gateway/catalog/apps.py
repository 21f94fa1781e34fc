"""App definitions for the iiskills.cloud ecosystem."""

FREE = "free"
PAID = "paid"

APPS: dict[str, dict] = {
    "main": {
        "id": "main",
        "name": "iiskills.cloud",
        "type": PAID,
        "bundle_id": None,
        "domain": "app.iiskills.cloud",
        "description": "iiskills.cloud learning portal",
    },
    "learn-ai": {
        "id": "learn-ai",
        "name": "Learn-AI",
        "type": PAID,
        "bundle_id": "ai-developer-bundle",
        "domain": "learn-ai.iiskills.cloud",
        "description": "Artificial intelligence fundamentals and applied AI",
    },
    "learn-apt": {
        "id": "learn-apt",
        "name": "Learn-Apt",
        "type": FREE,
        "bundle_id": None,
        "domain": "learn-apt.iiskills.cloud",
        "description": "Aptitude test content for various competitive exams",
    },
    "learn-chemistry": {
        "id": "learn-chemistry",
        "name": "Learn-Chemistry",
        "type": FREE,
        "bundle_id": None,
        "domain": "learn-chemistry.iiskills.cloud",
        "description": "Chemistry lessons and practice problems",
    },
    "learn-cricket": {
        "id": "learn-cricket",
        "name": "Learn-Cricket",
        "type": FREE,
        "bundle_id": None,
        "domain": "learn-cricket.iiskills.cloud",
        "description": "Cricket trivia, match quizzes and the Daily Strike",
    },
    "learn-developer": {
        "id": "learn-developer",
        "name": "Learn-Developer",
        "type": PAID,
        "bundle_id": "ai-developer-bundle",
        "domain": "learn-developer.iiskills.cloud",
        "description": "Software development from first program to deployment",
    },
    "learn-geography": {
        "id": "learn-geography",
        "name": "Learn-Geography",
        "type": FREE,
        "bundle_id": None,
        "domain": "learn-geography.iiskills.cloud",
        "description": "Geography lessons and general education",
    },
    "learn-management": {
        "id": "learn-management",
        "name": "Learn-Management",
        "type": PAID,
        "bundle_id": None,
        "domain": "learn-management.iiskills.cloud",
        "description": "Management and leadership essentials",
    },
    "learn-math": {
        "id": "learn-math",
        "name": "Learn-Math",
        "type": FREE,
        "bundle_id": None,
        "domain": "learn-math.iiskills.cloud",
        "description": "Mathematics lessons and practice problems",
    },
    "learn-physics": {
        "id": "learn-physics",
        "name": "Learn-Physics",
        "type": FREE,
        "bundle_id": None,
        "domain": "learn-physics.iiskills.cloud",
        "description": "Physics lessons and practice problems",
    },
    "learn-pr": {
        "id": "learn-pr",
        "name": "Learn-PR",
        "type": PAID,
        "bundle_id": None,
        "domain": "learn-pr.iiskills.cloud",
        "description": "Public relations and communication skills",
    },
}
