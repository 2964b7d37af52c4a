"""Capital Cities Grader

Scoring:
- 1.0 when the first line of the completion names the expected city
- 0.0 otherwise
"""


def normalize(text: str) -> str:
    """Normalize text for comparison: first line, stripped, trailing period removed, uppercase."""
    first_line = text.strip().splitlines()[0] if text.strip() else ""
    return first_line.strip().rstrip(".").upper()


def grade(model_output: str, expected: str, metadata: dict | None = None) -> dict:
    answer = normalize(model_output)
    target = normalize(expected or "")
    country = metadata.get("country", "unknown") if metadata else "unknown"

    if not target:
        return {
            "score": 0.0,
            "label": "WRONG",
            "reason": "No expected city given",
            "details": {"expected": expected, "got": answer, "country": country},
        }
    if answer == target:
        return {
            "score": 1.0,
            "label": "CORRECT",
            "reason": "Exact match",
            "details": {"expected": expected, "got": answer, "country": country},
        }
    if target in answer:
        return {
            "score": 1.0,
            "label": "CORRECT",
            "reason": "Expected city found in answer",
            "details": {"expected": expected, "got": answer, "country": country},
        }
    return {
        "score": 0.0,
        "label": "WRONG",
        "reason": f"Expected '{expected}'",
        "details": {"expected": expected, "got": answer, "country": country},
    }
