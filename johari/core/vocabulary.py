# johari/core/vocabulary.py
from typing import Tuple

# The 56 adjectives of the classic Johari window, in presentation order.
VOCABULARY: Tuple[str, ...] = (
    "Able",
    "Accepting",
    "Adaptable",
    "Bold",
    "Brave",
    "Calm",
    "Caring",
    "Cheerful",
    "Clever",
    "Complex",
    "Confident",
    "Dependable",
    "Dignified",
    "Empathetic",
    "Energetic",
    "Extroverted",
    "Friendly",
    "Giving",
    "Happy",
    "Helpful",
    "Idealistic",
    "Independent",
    "Ingenious",
    "Intelligent",
    "Introverted",
    "Kind",
    "Knowledgeable",
    "Logical",
    "Loving",
    "Mature",
    "Modest",
    "Nervous",
    "Observant",
    "Organized",
    "Patient",
    "Powerful",
    "Proud",
    "Quiet",
    "Reflective",
    "Relaxed",
    "Religious",
    "Responsive",
    "Searching",
    "Self-assertive",
    "Self-conscious",
    "Sensible",
    "Sentimental",
    "Shy",
    "Silly",
    "Spontaneous",
    "Sympathetic",
    "Tense",
    "Trustworthy",
    "Warm",
    "Wise",
    "Witty",
)
