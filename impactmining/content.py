from __future__ import annotations

# ────────────────────────────────────────────────────────────
# Static site copy bundled with the app (not stored in the backend)
# ────────────────────────────────────────────────────────────
from typing import Any, Dict, List

TAGLINE = "Hashing an abundant energy future"

MISSION = (
    "To democratize impact investing by creating a transparent, accessible platform where "
    "innovative projects can find the support they need to create lasting positive change."
)

VISION = (
    "A world where innovative solutions to global challenges are never held back by lack "
    "of funding or support."
)

BOARD_MEMBERS: List[Dict[str, str]] = [
    {
        "name": "Dr. Sarah Chen",
        "role": "CEO & Founder",
        "bio": "Former Tesla energy engineer with 15+ years in renewable energy systems "
        "and sustainable technology development.",
        "image": "https://images.pexels.com/photos/3785079/pexels-photo-3785079.jpeg"
        "?auto=compress&cs=tinysrgb&w=300&h=300&fit=crop",
    },
    {
        "name": "Michael Rodriguez",
        "role": "CTO",
        "bio": "Blockchain and fintech expert, previously at Coinbase and Stripe, "
        "specializing in transparent financial systems.",
        "image": "https://images.pexels.com/photos/3778603/pexels-photo-3778603.jpeg"
        "?auto=compress&cs=tinysrgb&w=300&h=300&fit=crop",
    },
    {
        "name": "Dr. Amara Okafor",
        "role": "Head of Impact",
        "bio": "Development economist with expertise in sustainable development programs "
        "across emerging markets.",
        "image": "https://images.pexels.com/photos/3785077/pexels-photo-3785077.jpeg"
        "?auto=compress&cs=tinysrgb&w=300&h=300&fit=crop",
    },
]

CORE_VALUES: List[Dict[str, str]] = [
    {
        "title": "Transparency",
        "description": "Every dollar is tracked with blockchain technology, ensuring complete "
        "visibility into how funds are used.",
    },
    {
        "title": "Global Impact",
        "description": "We connect projects worldwide, creating a network of positive change "
        "across communities and continents.",
    },
    {
        "title": "Community-Driven",
        "description": "Our platform is built by and for people who believe in the power of "
        "collective action.",
    },
    {
        "title": "Sustainable Growth",
        "description": "We focus on projects that create lasting impact and can be sustained "
        "long-term by local communities.",
    },
]

GOVERNANCE = [
    "All project approvals go through our independent review board",
    "Financial records are audited quarterly by third-party firms",
    "Community feedback directly influences platform development",
    "Regular impact reports are published for public review",
]

FINANCIALS = [
    "95% of donations go directly to projects",
    "5% covers platform operations and development",
    "All transactions are recorded on blockchain",
    "Monthly financial reports available to all users",
]

# Featured stories are editorial; user stories come from the backend.
FEATURED_STORIES: List[Dict[str, Any]] = [
    {
        "title": "Lights on at Kibera Secondary",
        "author": "Impact Mining Team",
        "location": "Nairobi, Kenya",
        "body": "A 40 kW rooftop array now keeps classrooms lit after sunset. Evening study "
        "sessions have doubled and the school's diesel bill is gone.",
    },
    {
        "title": "A clinic that never goes dark",
        "author": "Impact Mining Team",
        "location": "Kasese, Uganda",
        "body": "Battery storage funded by donors lets the maternity ward run through the "
        "night. Vaccines stay cold and births no longer happen by torchlight.",
    },
    {
        "title": "Cheaper power, busier market",
        "author": "Impact Mining Team",
        "location": "Mzuzu, Malawi",
        "body": "Hashrate revenue lowered the microgrid tariff by a third. Tailors, welders "
        "and cold-drink sellers now keep their shops open into the evening.",
    },
]

# Amount presets and per-dollar impact estimates shown on the donate form.
QUICK_AMOUNTS = (25, 50, 100, 250)
KWH_PER_USD = 2.5
STUDENTS_PER_USD = 0.1
CO2_TONS_PER_KWH = 0.0004

PAYMENT_METHODS = (
    ("crypto", "Cryptocurrency"),
    ("card", "Credit Card"),
)
