"""Keyword-driven topic suggestions for generating child nodes."""

from typing import Dict, List, Sequence, Tuple

MODES = ("expand", "organize", "brainstorm")
DEFAULT_MODE = "expand"

BASE_TEMPLATES: Dict[str, List[str]] = {
    "expand": ["Goals", "Steps", "Resources", "Timeline", "Risks"],
    "organize": ["High Priority", "Medium Priority", "Low Priority", "Urgent"],
    "brainstorm": ["New Angles", "Improvements", "Alternatives", "Future"],
}

# (keywords, templates per mode); the first matching entry wins.
KEYWORD_TEMPLATES: Sequence[Tuple[Tuple[str, ...], Dict[str, List[str]]]] = (
    (("project", "plan"), {
        "expand": ["Objectives", "Task Breakdown", "Team Roles", "Progress Tracking", "Quality Control"],
        "organize": ["Initiation", "Execution", "Monitoring", "Closure"],
        "brainstorm": ["Agile", "Waterfall", "Hybrid", "Test Automation"],
    }),
    (("learn", "study", "education"), {
        "expand": ["Learning Goals", "Methods", "Materials", "Schedule", "Assessment"],
        "organize": ["Theory", "Practice", "Review", "Testing"],
        "brainstorm": ["Online Courses", "Workshops", "Peer Learning", "Hands-on Projects"],
    }),
    (("product", "design"), {
        "expand": ["User Needs", "Features", "Implementation", "Validation", "Launch"],
        "organize": ["Requirements", "Prototype", "Development", "Optimization"],
        "brainstorm": ["User-Centered Design", "Data-Driven Design", "AI-Assisted Design", "Responsive Design"],
    }),
)


class SuggestionProvider:
    """Return short labels for a mode, tailored by keywords in the node text."""

    def __init__(self, base=None, keyword_templates=None):
        self.base = base or BASE_TEMPLATES
        self.keyword_templates = keyword_templates or KEYWORD_TEMPLATES

    def suggest(self, mode: str, text: str) -> List[str]:
        if mode not in MODES:
            mode = DEFAULT_MODE
        text = text.lower()
        for keywords, templates in self.keyword_templates:
            if any(word in text for word in keywords):
                return list(templates[mode])
        return list(self.base.get(mode, self.base[DEFAULT_MODE]))
