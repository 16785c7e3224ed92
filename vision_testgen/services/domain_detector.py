from dataclasses import dataclass, field
from typing import Iterable, List


@dataclass(frozen=True)
class DomainProfile:
    domain: str
    keywords: List[str] = field(default_factory=list)
    functions: List[str] = field(default_factory=list)
    test_areas: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DomainMatch:
    domain: str
    score: int
    functions: List[str]
    test_areas: List[str]


GENERAL = DomainProfile(
    domain="General Business Application",
    functions=["Data management", "User interaction", "Business workflow"],
    test_areas=["User interface", "Data integrity", "Workflow completion"],
)

# Checked in order; on a tied score the earlier profile wins
DOMAIN_PROFILES: List[DomainProfile] = [
    DomainProfile(
        "E-commerce/Shopping",
        ["product", "cart", "checkout", "payment", "order", "shipping", "price", "buy", "purchase", "catalog", "inventory", "store"],
        ["Product browsing", "Shopping cart management", "Payment processing", "Order tracking"],
        ["Purchase workflow", "Payment security", "Inventory management", "User account"],
    ),
    DomainProfile(
        "CRM/Customer Management",
        ["client", "customer", "case", "contact", "lead", "opportunity", "account", "relationship", "sales", "pipeline"],
        ["Client management", "Case tracking", "Contact management", "Sales pipeline"],
        ["Client data integrity", "Case workflow", "Communication tracking", "Reporting"],
    ),
    DomainProfile(
        "Banking/Financial",
        ["account", "balance", "transfer", "transaction", "payment", "deposit", "withdrawal", "loan", "credit", "debit", "finance"],
        ["Account management", "Money transfer", "Transaction history", "Payment processing"],
        ["Security", "Transaction accuracy", "Account balance", "Compliance"],
    ),
    DomainProfile(
        "Healthcare/Medical",
        ["patient", "medical", "appointment", "doctor", "prescription", "diagnosis", "treatment", "health", "clinic", "hospital"],
        ["Patient management", "Appointment scheduling", "Medical records", "Prescription management"],
        ["Patient privacy", "Data accuracy", "Appointment system", "Medical compliance"],
    ),
    DomainProfile(
        "Education/Learning",
        ["student", "course", "class", "grade", "assignment", "exam", "teacher", "education", "learning", "university", "school"],
        ["Student management", "Course enrollment", "Grade tracking", "Assignment submission"],
        ["Student records", "Grade calculation", "Course access", "Academic integrity"],
    ),
    DomainProfile(
        "HR/Human Resources",
        ["employee", "staff", "payroll", "leave", "department", "manager", "hire", "recruitment", "performance", "benefits"],
        ["Employee management", "Payroll processing", "Leave management", "Performance tracking"],
        ["Employee data", "Payroll accuracy", "Leave approval", "Performance reviews"],
    ),
    DomainProfile(
        "Project Management",
        ["project", "task", "milestone", "deadline", "team", "resource", "timeline", "progress", "deliverable", "status"],
        ["Project tracking", "Task management", "Team collaboration", "Resource allocation"],
        ["Project timeline", "Task assignment", "Progress tracking", "Resource management"],
    ),
    DomainProfile(
        "Content Management",
        ["content", "article", "post", "publish", "edit", "media", "page", "website", "blog", "cms", "editor"],
        ["Content creation", "Publishing workflow", "Media management", "Page editing"],
        ["Content publishing", "Media upload", "Editing workflow", "Page management"],
    ),
]


def detect_domain(texts: Iterable[str], profiles: List[DomainProfile] = DOMAIN_PROFILES) -> DomainMatch:
    """Pick the profile whose keywords appear most often in the page names and OCR text.

    Each keyword counts once (substring match on the lower-cased text). With no
    keyword hits the general profile is returned.
    """
    haystack = " ".join(t for t in texts if t).lower()
    best = DomainMatch(GENERAL.domain, 0, GENERAL.functions, GENERAL.test_areas)
    for profile in profiles:
        score = sum(1 for keyword in profile.keywords if keyword in haystack)
        if score > best.score:
            best = DomainMatch(profile.domain, score, profile.functions, profile.test_areas)
    return best
