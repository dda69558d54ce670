"""Evidence granted the first time a case is completed."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EvidenceTemplate:
    title: str
    description: str
    evidence_type: str  # code | document | clue
    content: str
    importance: str  # medium | high | critical


CASE_EVIDENCE: dict[str, tuple[EvidenceTemplate, ...]] = {
    "case-tutorial": (
        EvidenceTemplate(
            "Detective Academy Certificate",
            "Proof of completion of the Detective Academy training program",
            "document",
            "This certifies that you have successfully completed the basic training "
            "in HTML and CSS investigation techniques",
            "high",
        ),
        EvidenceTemplate(
            "HTML Structure Analysis",
            "Notes on proper HTML structure and heading hierarchy",
            "code",
            "Learned how to fix improper heading tags (h2 to h1) to reveal hidden content",
            "medium",
        ),
        EvidenceTemplate(
            "CSS Display Property Investigation",
            "Documentation on using CSS to reveal hidden elements",
            "code",
            "Changing display:none to display:block revealed critical evidence",
            "high",
        ),
    ),
    "case-vanishing-blogger": (
        EvidenceTemplate(
            "Corrupted Blog HTML",
            "Found broken HTML tags that were hiding Sam's last message",
            "code",
            "<h2> tags were preventing proper display of the blog content",
            "high",
        ),
        EvidenceTemplate(
            "Hidden CSS Clue",
            "Discovered a secret message hidden in the CSS code",
            "clue",
            "Sam left breadcrumbs about checking backup files on old server",
            "critical",
        ),
    ),
    "visual-vanishing-blogger": (
        EvidenceTemplate(
            "Rishi's Encrypted Notes",
            "Found encrypted documents about suspicious Sherpa companies",
            "document",
            "Rishi's research revealed multiple fake Sherpa certification schemes targeting climbers",
            "critical",
        ),
        EvidenceTemplate(
            "Hidden CSS Evidence",
            "Discovered hidden HTML elements revealing the truth",
            "code",
            "CSS visibility properties were concealing crucial evidence about Rishi's whereabouts",
            "high",
        ),
        EvidenceTemplate(
            "Phone Message Clue",
            "Decoded the final message from Rishi's device",
            "clue",
            "Rishi wasn't kidnapped - he went into hiding after exposing the corruption",
            "critical",
        ),
    ),
    "case-social-media-stalker": (
        EvidenceTemplate(
            "Malicious Script Code",
            "Found hidden JavaScript code used for tracking users",
            "code",
            "Tracking script embedded in profile pages",
            "critical",
        ),
        EvidenceTemplate(
            "User Data Logs",
            "Discovered logs of unauthorized data collection",
            "document",
            "Log files show systematic harvesting of personal information",
            "high",
        ),
    ),
    "case-corporate-sabotage": (
        EvidenceTemplate(
            "Sabotaged Website Code",
            "Identified malicious code injected into company website",
            "code",
            "Hidden CSS rules causing layout failures during presentation",
            "critical",
        ),
        EvidenceTemplate(
            "Internal Email Trail",
            "Corporate communications revealing the sabotage plot",
            "document",
            "Email evidence shows coordinated effort to undermine the company presentation",
            "high",
        ),
    ),
    "case-dating-app-disaster": (
        EvidenceTemplate(
            "Profile Manipulation Code",
            "Code used to alter user profiles and create fake matches",
            "code",
            "JavaScript functions for profile data manipulation",
            "critical",
        ),
        EvidenceTemplate(
            "Fake Profile Database",
            "Database of artificially created dating profiles",
            "document",
            "Systematic creation of fake profiles to manipulate user engagement",
            "high",
        ),
    ),
    "case-ecommerce-fraud": (
        EvidenceTemplate(
            "Price Manipulation Script",
            "Hidden code altering product prices at checkout",
            "code",
            "JavaScript code modifying DOM elements during payment process",
            "critical",
        ),
        EvidenceTemplate(
            "Financial Transaction Logs",
            "Evidence of fraudulent pricing modifications",
            "document",
            "Log files showing systematic price manipulation affecting customer payments",
            "critical",
        ),
    ),
    "case-gaming-platform-hack": (
        EvidenceTemplate(
            "Exploit Code",
            "Code used to exploit gaming platform vulnerabilities",
            "code",
            "CSS and JavaScript exploits for unauthorized access",
            "critical",
        ),
        EvidenceTemplate(
            "Hack Methodology Document",
            "Step-by-step guide used by hackers to breach the platform",
            "document",
            "Detailed instructions for exploiting CSS injection vulnerabilities in gaming platforms",
            "high",
        ),
    ),
}


def evidence_for_case(case_id: str) -> tuple[EvidenceTemplate, ...]:
    """Templates for a case; unknown cases yield no evidence."""
    return CASE_EVIDENCE.get(case_id, ())
