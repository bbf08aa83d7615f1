import logging

from .auth import hash_password
from .models import UserRecord
from .storage import Store


logger = logging.getLogger("uvicorn.error")

INDUSTRIES = [
    {
        "name": "SaaS",
        "description": "Software as a Service sales scenarios",
        "icon": "💻",
        "scenario_templates": [
            {
                "id": "saas_cold_call_1",
                "title": "Cold Call: CTO of Series B Startup",
                "description": (
                    "You are calling the CTO of a growing Series B startup. They are currently using a "
                    "competitor's legacy solution that is slow and expensive. Your goal is to book a "
                    "15-minute discovery meeting."
                ),
                "difficulty": "intermediate",
                "target_persona": "CTO",
            },
            {
                "id": "saas_discovery_1",
                "title": "Discovery: VP of Sales",
                "description": (
                    "You have a scheduled discovery call with a VP of Sales who is frustrated with low team "
                    "quota attainment. Uncover their specific pain points around coaching and onboarding."
                ),
                "difficulty": "advanced",
                "target_persona": "VP of Sales",
            },
            {
                "id": "saas_closing_1",
                "title": "Closing: Procurement Manager",
                "description": (
                    "You are at the final stage with a Procurement Manager who is pushing for a 20% discount. "
                    "Maintain your price integrity while trading for value (e.g., longer term, prepayment)."
                ),
                "difficulty": "hard",
                "target_persona": "Procurement Manager",
            },
        ],
    },
    {
        "name": "Financial Services",
        "description": "Banking, insurance, and financial product sales",
        "icon": "💰",
        "scenario_templates": [
            {
                "id": "fin_wealth_1",
                "title": "High Net Worth Consultation",
                "description": (
                    "First meeting with a potential HNW client who is skeptical about active management. "
                    "Build rapport and uncover their long-term financial goals."
                ),
                "difficulty": "intermediate",
                "target_persona": "High Net Worth Individual",
            },
        ],
    },
    {
        "name": "Healthcare",
        "description": "Medical devices, pharmaceuticals, and healthcare IT",
        "icon": "🏥",
        "scenario_templates": [],
    },
    {
        "name": "Retail",
        "description": "Consumer goods and retail sales",
        "icon": "🛍️",
        "scenario_templates": [],
    },
    {
        "name": "Manufacturing",
        "description": "Industrial equipment and manufacturing solutions",
        "icon": "🏭",
        "scenario_templates": [],
    },
    {
        "name": "International Business",
        "description": "Cross-border and global sales scenarios",
        "icon": "🌍",
        "scenario_templates": [],
    },
]

SKILLS = [
    ("Objection Handling", "communication"),
    ("Closing Techniques", "closing"),
    ("Discovery", "discovery"),
    ("Value Proposition", "communication"),
    ("Negotiation", "closing"),
    ("Active Listening", "communication"),
    ("Rapport Building", "communication"),
    ("Pain Identification", "discovery"),
    ("ROI Presentation", "communication"),
    ("Competitive Positioning", "communication"),
]

LEARNING_MODULES = [
    {
        "title": "Objection Handling Mastery",
        "description": "Learn to effectively address and overcome common sales objections",
        "difficulty": "intermediate",
        "estimated_time": 45,
        "xp_reward": 150,
        "skills": ["Objection Handling", "Active Listening", "Rapport Building"],
        "prerequisites": [],
        "scenario_type": "objection_handling",
        "order": 1,
    },
    {
        "title": "Advanced Closing Techniques",
        "description": "Master the art of closing deals with confidence",
        "difficulty": "advanced",
        "estimated_time": 60,
        "xp_reward": 200,
        "skills": ["Closing Techniques", "Negotiation", "Value Proposition"],
        "prerequisites": [],
        "scenario_type": "closing",
        "order": 2,
    },
    {
        "title": "Discovery Call Excellence",
        "description": "Perfect your discovery process to uncover customer needs",
        "difficulty": "beginner",
        "estimated_time": 30,
        "xp_reward": 100,
        "skills": ["Discovery", "Pain Identification", "Active Listening"],
        "prerequisites": [],
        "scenario_type": "cold_call",
        "order": 0,
    },
    {
        "title": "Product Demo Perfection",
        "description": "Deliver compelling product demonstrations that convert",
        "difficulty": "intermediate",
        "estimated_time": 50,
        "xp_reward": 175,
        "skills": ["Value Proposition", "ROI Presentation", "Competitive Positioning"],
        "prerequisites": [],
        "scenario_type": "product_demo",
        "order": 3,
    },
]


def seed_reference_data(store: Store) -> dict:
    """Upsert industries, skills and learning modules. Safe to run repeatedly."""
    for industry in INDUSTRIES:
        store.upsert_industry(**industry)
    for name, category in SKILLS:
        store.upsert_skill(name=name, category=category)
    for module in LEARNING_MODULES:
        store.upsert_learning_module(**module)

    counts = {
        "industries": len(INDUSTRIES),
        "skills": len(SKILLS),
        "learning_modules": len(LEARNING_MODULES),
    }
    logger.info(
        "seed_reference_data_done storage=%s industries=%s skills=%s modules=%s",
        store.storage_name,
        counts["industries"],
        counts["skills"],
        counts["learning_modules"],
    )
    return counts


def seed_admin(store: Store, email: str, password: str, name: str = "Admin") -> UserRecord:
    existing = store.get_user_by_email(email)
    if existing is not None:
        if existing.role != "admin":
            existing = store.update_user(existing.id, role="admin")
        logger.info("user_id=%s seed_admin_promoted", existing.id)
        return existing

    admin = store.create_user(email=email, password_hash=hash_password(password), name=name, role="admin")
    logger.info("user_id=%s seed_admin_created", admin.id)
    return admin
