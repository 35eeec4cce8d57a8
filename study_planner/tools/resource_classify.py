"""Keyword classification of study resources into usage type and phase."""
from study_planner.models.plan import Resource, ResourceClassification


# Checked in this order; the first category with a matching keyword wins.
RESOURCE_CATEGORIES = [
    (
        "practice",
        "late",
        ["practice", "problem", "exercise", "quiz", "exam", "test", "past paper", "worksheet", "drill"],
        "Practice material: use after a topic has been studied, concentrated in later weeks",
    ),
    (
        "review",
        "mid",
        ["flashcard", "anki", "summary", "summaries", "cheat sheet", "notes", "review", "outline", "study guide"],
        "Review material: revisit on a spaced-repetition schedule",
    ),
    (
        "reference",
        "early",
        ["reference", "handbook", "manual", "documentation", "docs", "glossary", "dictionary", "encyclopedia", "wiki"],
        "Reference material: keep on hand for look-ups while learning",
    ),
    (
        "learning",
        "early",
        ["textbook", "book", "lecture", "video", "course", "tutorial", "podcast", "reading", "chapter", "slides"],
        "Learning material: use when first introducing a topic",
    ),
]

DEFAULT_CLASSIFICATION = ("learning", "mid", "General material: no strong signals, treated as learning material")


def classify_resource(name: str) -> ResourceClassification:
    """
    Classify a resource by name.

    Args:
        name: Display name, e.g. "Barron's Practice Tests"

    Returns:
        ResourceClassification with type, phase and a short description
    """
    name_lower = name.lower()

    for resource_type, phase, keywords, description in RESOURCE_CATEGORIES:
        if any(keyword in name_lower for keyword in keywords):
            return ResourceClassification(type=resource_type, phase=phase, description=description)

    resource_type, phase, description = DEFAULT_CLASSIFICATION
    return ResourceClassification(type=resource_type, phase=phase, description=description)


def classify_resources(resources: list[Resource]) -> list[Resource]:
    """Return copies of ``resources`` with their classification recomputed."""
    return [
        r.model_copy(update={"classification": classify_resource(r.name)})
        for r in resources
    ]


def resources_by_type(resources: list[Resource]) -> dict[str, list[str]]:
    """Group classified resource names by usage type, preserving input order."""
    grouped: dict[str, list[str]] = {"learning": [], "review": [], "practice": [], "reference": []}
    for r in resources:
        resource_type = r.classification.type or classify_resource(r.name).type
        grouped[resource_type].append(r.name)
    return grouped
