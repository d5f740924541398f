from valet_quotes.core.enums import LocationCategory

DOWNTOWN_MARKERS = ("downtown", "city center", "financial district", "times square")
SUBURBAN_MARKERS = ("suburb", "residential")


def classify(location: str) -> LocationCategory:
    """Substring heuristic over free text.

    Known false negatives/positives: a suburb named "Downtown Heights" is
    classified downtown, and anything unrecognised falls through to remote.
    """
    text = location.lower()
    if any(marker in text for marker in DOWNTOWN_MARKERS):
        return LocationCategory.DOWNTOWN
    if any(marker in text for marker in SUBURBAN_MARKERS):
        return LocationCategory.SUBURBAN
    return LocationCategory.REMOTE


def normalize_location(location: str) -> str:
    """Group free-text locations into reporting buckets."""
    text = location.lower()
    if "downtown" in text or "city center" in text:
        return "Downtown"
    if "hotel" in text:
        return "Hotels"
    if "restaurant" in text:
        return "Restaurants"
    if "corporate" in text or "office" in text:
        return "Corporate"
    if "event" in text or "venue" in text:
        return "Event Venues"
    return "Other"
