"""
Starter content for an empty installation.
"""

from __future__ import annotations

import logging

from qa_backend.db import DbClient, now_ms
from qa_backend.types import QuestionSource, QuestionStatus

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000

SEED_QUESTIONS = [
    {
        "question": "নামাজের ওয়াক্ত সময় কীভাবে নির্ধারণ করা হয়?",
        "answer": (
            "নামাজের ওয়াক্ত সূর্যের অবস্থান অনুযায়ী নির্ধারিত হয়। ফজর সূর্যোদয়ের আগে, "
            "জোহর দুপুরের পরে, আসর বিকেলে, মাগরিব সূর্যাস্তের পরে এবং এশা রাতে আদায় করা হয়।"
        ),
        "category": "নামাজ",
        "views": 1250,
        "helpful": 890,
        "tags": ["নামাজ", "ওয়াক্ত", "সময়"],
        "age_days": 30,
    },
    {
        "question": "রমজান মাসে রোজা রাখা কি সকলের জন্য বাধ্যতামূলক?",
        "answer": (
            "সুস্থ, প্রাপ্তবয়স্ক মুসলিমদের জন্য রমজানে রোজা রাখা ফরজ। তবে অসুস্থ, ভ্রমণরত, "
            "গর্ভবতী বা স্তন্যদায়ী মায়েদের জন্য ছাড় রয়েছে এবং পরে তা কাজা করতে হয়।"
        ),
        "category": "রোজা",
        "views": 980,
        "helpful": 756,
        "tags": ["রোজা", "রমজান", "ফরজ"],
        "age_days": 25,
    },
    {
        "question": "যাকাত দেওয়ার নিয়ম কী?",
        "answer": (
            "নেসাব পরিমাণ সম্পদের মালিক হলে বছরে একবার ২.৫% হারে যাকাত দিতে হয়। "
            "এটি গরিব, মিসকিন এবং অভাবগ্রস্তদের মধ্যে বিতরণ করা হয়।"
        ),
        "category": "যাকাত",
        "views": 1120,
        "helpful": 834,
        "tags": ["যাকাত", "দান", "নেসাব"],
        "age_days": 20,
    },
    {
        "question": "কুরআন তেলাওয়াতের সঠিক নিয়ম কী?",
        "answer": (
            "কুরআন তেলাওয়াতের জন্য পবিত্র থাকতে হবে, তাজভিদের নিয়ম মেনে তিলাওয়াত করতে হবে "
            "এবং অর্থ বুঝে পড়ার চেষ্টা করতে হবে।"
        ),
        "category": "কুরআন",
        "views": 1450,
        "helpful": 1123,
        "tags": ["কুরআন", "তেলাওয়াত", "তাজভিদ"],
        "age_days": 15,
    },
    {
        "question": "হজ্জ কখন এবং কীভাবে করতে হয়?",
        "answer": (
            "জিলহজ মাসের ৮ থেকে ১২ তারিখে হজ্জ পালন করা হয়। এটি শারীরিক ও আর্থিকভাবে "
            "সক্ষম প্রত্যেক মুসলিমের জন্য জীবনে একবার ফরজ।"
        ),
        "category": "হজ্জ",
        "views": 890,
        "helpful": 673,
        "tags": ["হজ্জ", "মক্কা", "ইবাদত"],
        "age_days": 10,
    },
]


def seed_questions(db: DbClient) -> int:
    """Insert the starter questions if the collection is empty. Returns the count inserted."""
    if db.count_questions() > 0:
        logger.info("Questions already exist; skipping seed")
        return 0
    now = now_ms()
    for item in SEED_QUESTIONS:
        db.create_question(
            question=item["question"],
            answer=item["answer"],
            category=item["category"],
            tags=item["tags"],
            views=item["views"],
            helpful=item["helpful"],
            created_at=now - item["age_days"] * DAY_MS,
            status=QuestionStatus.APPROVED,
            source=QuestionSource.ADMIN,
        )
    logger.info("Seeded %d questions", len(SEED_QUESTIONS))
    return len(SEED_QUESTIONS)
